"""Publish/subscribe bus connecting extractors, trackers and sinks.

Handlers are keyed by an event's ``kind`` tag. Plain functions run inline
during :meth:`EventBus.publish`; coroutine handlers are scheduled as tasks
on the running loop so a slow database or network call in one handler
never holds up dispatch of the next line.
"""

from __future__ import annotations

import asyncio
import inspect
from collections import defaultdict
from typing import Any, Awaitable, Callable, Union

from . import logs


Handler = Callable[[Any], Union[None, Awaitable[None]]]


class EventBus:
    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)
        self._pending: set[asyncio.Task] = set()

    def subscribe(self, kind: str, handler: Handler) -> None:
        self._handlers[kind].append(handler)

    def unsubscribe(self, kind: str, handler: Handler) -> None:
        handlers = self._handlers.get(kind)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def handler_count(self, kind: str) -> int:
        return len(self._handlers.get(kind, ()))

    def publish(self, event: Any) -> None:
        """Deliver ``event`` to every handler subscribed to its kind.

        A failing handler is logged and does not prevent delivery to the
        others.
        """
        for handler in list(self._handlers.get(event.kind, ())):
            try:
                result = handler(event)
            except Exception as e:  # noqa: BLE001 - isolate subscribers
                logs.error("bus_handler_failed", kind=event.kind, handler=_name(handler), error=repr(e))
                continue
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logs.error("bus_handler_failed", error=repr(exc))

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait until every scheduled handler task, including ones they spawn, finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def _name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", repr(handler))


__all__ = ["EventBus", "Handler"]
