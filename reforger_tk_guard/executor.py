"""Punishment executor: the boundary between trackers and the outside world.

Trackers decide *what* to do; the executor issues the in-game commands,
writes punishment records and calls the ban API. Every call is a single
bounded attempt. Collaborator failures are logged and reported as a
failed :class:`ActionOutcome`, never raised into the trackers.

Commands sent on the command channel::

    #warn <playerId> "<message>"
    #kick <playerId>
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from . import logs
from .battlemetrics import BanRequest
from .errors import ChannelUnavailable
from .events import PlayerIdentity, PunishmentKind


class CommandChannel(Protocol):
    """In-game admin command channel (RCON)."""

    @property
    def is_connected(self) -> bool: ...

    async def send_command(self, command: str) -> None: ...


class PunishmentHistory(Protocol):
    async def insert_punishment(
        self, server_id: Optional[str], player_name: str, player_guid: str, action: str, duration: Optional[str] = None
    ) -> int: ...

    async def count_recent_actions(self, player_guid: str, action: str, days: int) -> int: ...


class BanClient(Protocol):
    async def create_ban(self, player_guid: str, request: BanRequest) -> str: ...

    async def create_player_note(self, player_guid: str, note: str) -> None: ...


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one executor call.

    Attributes
    ----------
    ok : bool
        Whether the action was performed.
    detail : str
        Failure description, empty on success.
    reference : str or None
        Remote identifier (e.g. ban id) when the collaborator returns one.
    """
    ok: bool
    detail: str = ""
    reference: Optional[str] = None


class LoggingCommandChannel:
    """Command channel that only logs what it would send."""

    def __init__(self) -> None:
        self.sent: list[str] = []

    @property
    def is_connected(self) -> bool:
        return True

    async def send_command(self, command: str) -> None:
        self.sent.append(command)
        logs.info("dry_run_command", command=command)


def warn_command(player_id: int, message: str) -> str:
    # the message is quoted on the wire; keep it a single token
    text = message.replace('"', "'")
    return f'#warn {player_id} "{text}"'


def kick_command(player_id: int) -> str:
    return f"#kick {player_id}"


class PunishmentExecutor:
    """Stateless boundary used by both escalation trackers.

    Parameters
    ----------
    channel : CommandChannel
        In-game command channel.
    store : PunishmentHistory, optional
        Punishment history; without one nothing is persisted and kick
        history counts as empty.
    ban_client : BanClient, optional
        Ban/note API; without one ban requests and notes fail.
    server_id : str, optional
        Stored with every punishment record.
    timeout : float
        Upper bound, in seconds, for each collaborator call.
    """

    def __init__(
        self,
        channel: CommandChannel,
        store: Optional[PunishmentHistory] = None,
        ban_client: Optional[BanClient] = None,
        server_id: Optional[str] = None,
        timeout: float = 10.0,
    ) -> None:
        self.channel = channel
        self.store = store
        self.ban_client = ban_client
        self.server_id = server_id
        self.timeout = timeout

    async def _send(self, command: str) -> None:
        if not self.channel.is_connected:
            raise ChannelUnavailable("command channel is not connected")
        await asyncio.wait_for(self.channel.send_command(command), self.timeout)

    async def warn(self, identity: PlayerIdentity, message: str) -> ActionOutcome:
        command = warn_command(identity.player_id, message)
        try:
            await self._send(command)
        except Exception as e:  # noqa: BLE001 - reported as outcome
            logs.error("warn_failed", player=identity.name, player_id=identity.player_id, error=repr(e))
            return ActionOutcome(False, repr(e))
        logs.info("warn_sent", player=identity.name, player_id=identity.player_id, command=command)
        return ActionOutcome(True)

    async def kick(self, identity: PlayerIdentity) -> ActionOutcome:
        command = kick_command(identity.player_id)
        try:
            await self._send(command)
        except Exception as e:  # noqa: BLE001 - reported as outcome
            logs.error("kick_failed", player=identity.name, player_id=identity.player_id, guid=identity.guid, error=repr(e))
            return ActionOutcome(False, repr(e))
        logs.warning("kick_sent", player=identity.name, player_id=identity.player_id, guid=identity.guid, command=command)
        return ActionOutcome(True)

    async def request_ban(
        self,
        identity: PlayerIdentity,
        reason: str,
        duration_hours: int,
        *,
        note: str = "",
        auto_add: bool = False,
        native: bool = False,
        org_wide: bool = True,
    ) -> ActionOutcome:
        if self.ban_client is None:
            logs.error("ban_failed", player=identity.name, guid=identity.guid, error="no ban client configured")
            return ActionOutcome(False, "no ban client configured")
        request = BanRequest(
            reason=reason,
            note=note,
            expires=datetime.now(timezone.utc) + timedelta(hours=duration_hours),
            permanent=False,
            auto_add_enabled=auto_add,
            native_enabled=native,
            org_wide=org_wide,
        )
        try:
            ban_id = await asyncio.wait_for(self.ban_client.create_ban(identity.guid, request), self.timeout)
        except Exception as e:  # noqa: BLE001 - reported as outcome
            logs.error("ban_failed", player=identity.name, guid=identity.guid, error=repr(e))
            return ActionOutcome(False, repr(e))
        logs.warning("ban_created", player=identity.name, guid=identity.guid, hours=duration_hours, ban_id=ban_id)
        return ActionOutcome(True, reference=ban_id)

    async def add_note(self, identity: PlayerIdentity, note: str) -> ActionOutcome:
        if self.ban_client is None:
            return ActionOutcome(False, "no ban client configured")
        try:
            await asyncio.wait_for(self.ban_client.create_player_note(identity.guid, note), self.timeout)
        except Exception as e:  # noqa: BLE001 - reported as outcome
            logs.error("note_failed", player=identity.name, guid=identity.guid, error=repr(e))
            return ActionOutcome(False, repr(e))
        logs.info("note_added", player=identity.name, guid=identity.guid)
        return ActionOutcome(True)

    async def record_action(
        self, identity: PlayerIdentity, kind: PunishmentKind, duration: Optional[int] = None
    ) -> ActionOutcome:
        """Persist a kick or ban record; failures never undo the action."""
        if self.store is None:
            return ActionOutcome(False, "no store configured")
        try:
            row_id = await asyncio.wait_for(
                self.store.insert_punishment(
                    self.server_id,
                    identity.name,
                    identity.guid,
                    kind.value,
                    str(duration) if duration is not None else None,
                ),
                self.timeout,
            )
        except Exception as e:  # noqa: BLE001 - reported as outcome
            logs.error("record_failed", action=kind.value, player=identity.name, guid=identity.guid, error=repr(e))
            return ActionOutcome(False, repr(e))
        logs.info("record_saved", action=kind.value, player=identity.name, guid=identity.guid, duration=duration)
        return ActionOutcome(True, reference=str(row_id))

    async def count_recent_kicks(self, player_guid: str, days: int) -> Optional[int]:
        """Count persisted kicks of ``player_guid`` in the last ``days`` days.

        Returns ``None`` when the history cannot be read.
        """
        if self.store is None:
            return 0
        try:
            return await asyncio.wait_for(
                self.store.count_recent_actions(player_guid, PunishmentKind.KICK.value, days), self.timeout
            )
        except Exception as e:  # noqa: BLE001 - reported as outcome
            logs.error("history_read_failed", guid=player_guid, error=repr(e))
            return None


__all__ = [
    "ActionOutcome",
    "BanClient",
    "CommandChannel",
    "LoggingCommandChannel",
    "PunishmentExecutor",
    "PunishmentHistory",
    "kick_command",
    "warn_command",
]
