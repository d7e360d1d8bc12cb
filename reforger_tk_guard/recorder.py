"""Persist every extracted event to the event log tables."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from . import logs
from .bus import EventBus
from .db import EventStore
from .errors import PersistenceFailure
from .events import ChatMessage, EditorAction, PlayerConnected, PlayerKilled


class EventRecorder:
    """Bus subscriber writing chat, editor, kill and connection events.

    A failed insert is logged and the event is dropped; recording never
    affects escalation.
    """

    def __init__(self, store: EventStore, server_id: Optional[str] = None) -> None:
        self.store = store
        self.server_id = server_id
        self.saved = 0
        self.failed = 0
        self._bus: Optional[EventBus] = None
        self._routes: dict[str, Callable[[Optional[str], Any], Awaitable[None]]] = {
            ChatMessage.kind: store.save_chat_message,
            EditorAction.kind: store.save_editor_action,
            PlayerKilled.kind: store.save_player_kill,
            PlayerConnected.kind: store.save_player_connection,
        }

    def attach(self, bus: EventBus) -> None:
        self._bus = bus
        for kind in self._routes:
            bus.subscribe(kind, self.record)

    def close(self) -> None:
        if self._bus is not None:
            for kind in self._routes:
                self._bus.unsubscribe(kind, self.record)
            self._bus = None

    async def record(self, event) -> None:
        save = self._routes.get(event.kind)
        if save is None:
            return
        try:
            await save(self.server_id, event)
        except PersistenceFailure as e:
            self.failed += 1
            logs.error("event_record_failed", kind=event.kind, error=str(e))
            return
        self.saved += 1


__all__ = ["EventRecorder"]
