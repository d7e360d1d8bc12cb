"""Reforger teamkill guard.

This package reads an Arma Reforger server console log, extracts typed
game events from it and escalates teamkillers from warnings to kicks to
timed bans. It offers:

- A CLI to replay or follow a console log (``reforger_tk_guard.ingest``)
- A round-scoped warn/kick/ban tracker (``reforger_tk_guard.round_tracker``)
- A sliding-window auto-kick tracker (``reforger_tk_guard.window_tracker``)

Notes
-----
- See ``reforger_tk_guard.extractors`` for the log line grammar.
- See ``reforger_tk_guard.executor`` for the command/persistence boundary.
- See ``reforger_tk_guard.db`` for schema and persistence helpers.
"""

__all__ = []
