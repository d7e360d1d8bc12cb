"""Exception types raised by the collaborators around the escalation core.

The trackers never see these directly: the punishment executor catches
them, logs them and reports a failed :class:`~reforger_tk_guard.executor.ActionOutcome`.
"""

from __future__ import annotations


class TkGuardError(Exception):
    """Base class for all errors raised by this package."""


class ChannelUnavailable(TkGuardError):
    """The in-game command channel is not connected."""


class PersistenceFailure(TkGuardError):
    """A database read or write failed."""


class RemoteApiFailure(TkGuardError):
    """The ban/note API rejected a request or could not be reached."""


__all__ = ["TkGuardError", "ChannelUnavailable", "PersistenceFailure", "RemoteApiFailure"]
