"""Structured logging helpers.

Every decision and failure is emitted as one line, either
``event key=value ...`` or, with ``LOG_JSON`` set, a JSON object.
"""
from __future__ import annotations

import json as _json
import logging
import os
from datetime import datetime, timezone
from typing import Any

_LOGGER_NAME = "reforger_tk_guard"
_LOG_JSON = os.getenv("LOG_JSON", "").lower() in {"1", "true", "yes"}


def init_logging(level: str | int = "INFO", json_lines: bool | None = None) -> None:
    global _LOG_JSON
    if json_lines is not None:
        _LOG_JSON = json_lines
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    if logging.getLogger().handlers:
        logging.getLogger(_LOGGER_NAME).setLevel(level)
        return
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(message)s")


def _emit(level: str, event: str, **fields: Any) -> None:
    logger = logging.getLogger(_LOGGER_NAME)
    lvl = getattr(logging, level.upper(), logging.INFO)
    if not logger.isEnabledFor(lvl):
        return
    if _LOG_JSON:
        record = {"ts": datetime.now(timezone.utc).isoformat(), "level": level, "event": event}
        record.update(fields)
        logger.log(lvl, _json.dumps(record, ensure_ascii=False, default=str))
    else:
        extras = " ".join(f"{k}={v}" for k, v in fields.items())
        logger.log(lvl, f"{event} {extras}".strip())


class BoundLog:
    """Logging helpers that add fixed context to every line.

    Trackers bind their name so each decision line says which tracker
    made it; further fields (e.g. a player GUID) can be layered with
    :meth:`bind`.
    """

    def __init__(self, **context: Any) -> None:
        self.context = context

    def bind(self, **fields: Any) -> "BoundLog":
        return BoundLog(**{**self.context, **fields})

    def info(self, event: str, **fields: Any) -> None:
        _emit("INFO", event, **{**self.context, **fields})

    def warning(self, event: str, **fields: Any) -> None:
        _emit("WARNING", event, **{**self.context, **fields})

    def error(self, event: str, **fields: Any) -> None:
        _emit("ERROR", event, **{**self.context, **fields})

    def debug(self, event: str, **fields: Any) -> None:
        _emit("DEBUG", event, **{**self.context, **fields})


def bind(**context: Any) -> BoundLog:
    return BoundLog(**context)


def info(event: str, **fields: Any) -> None:
    _emit("INFO", event, **fields)


def warning(event: str, **fields: Any) -> None:
    _emit("WARNING", event, **fields)


def error(event: str, **fields: Any) -> None:
    _emit("ERROR", event, **fields)


def debug(event: str, **fields: Any) -> None:
    _emit("DEBUG", event, **fields)


__all__ = ["BoundLog", "bind", "init_logging", "info", "warning", "error", "debug"]
