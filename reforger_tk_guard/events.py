"""Typed domain events produced from console log lines.

Each event class carries a ``kind`` tag used as the bus topic. Events are
frozen dataclasses, so extracting the same line twice yields equal values.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Union


@dataclass(frozen=True)
class LogLine:
    """A raw console line and its arrival sequence number."""
    seq: int
    text: str


@dataclass(frozen=True)
class PlayerIdentity:
    """Who a player is.

    Attributes
    ----------
    player_id : int
        In-round numeric id, used for ``#warn``/``#kick`` commands.
    guid : str
        Durable identity; escalation state is keyed on it.
    name : str
        Last known display name.
    """
    player_id: int
    guid: str
    name: str


@dataclass(frozen=True)
class ChatMessage:
    kind: ClassVar[str] = "chat_message"

    timestamp: int
    player_id: int
    player_name: str
    player_guid: str
    channel_id: int
    channel_type: str
    message: str

    @property
    def identity(self) -> PlayerIdentity:
        return PlayerIdentity(self.player_id, self.player_guid, self.player_name)


@dataclass(frozen=True)
class EditorAction:
    """A Game Master editor action.

    ``selected_entity_names`` and ``selected_entity_owner_ids`` are the
    comma-separated sub-lists of the line, split and trimmed; both are
    ``("unknown",)`` when the field is absent or literally ``unknown``.
    """
    kind: ClassVar[str] = "editor_action"

    timestamp: int
    player_id: int
    player_name: str
    player_guid: str
    action: str
    action_type: str
    hovered_entity_name: str
    hovered_entity_owner_id: int
    selected_entity_names: tuple[str, ...]
    selected_entity_owner_ids: tuple[Union[int, str], ...]
    raw_selected_names: str
    raw_selected_owner_ids: str

    @property
    def identity(self) -> PlayerIdentity:
        return PlayerIdentity(self.player_id, self.player_guid, self.player_name)


@dataclass(frozen=True)
class PlayerRef:
    """One side of a kill."""
    id: int
    name: str
    guid: str
    control: str
    control_type: str
    disguise: str

    @property
    def identity(self) -> PlayerIdentity:
        return PlayerIdentity(self.id, self.guid, self.name)


@dataclass(frozen=True)
class PlayerKilled:
    kind: ClassVar[str] = "player_killed"

    timestamp: int
    killer: PlayerRef
    victim: PlayerRef
    friendly_fire: bool
    team_kill: bool
    weapon: str
    weapon_source: str
    weapon_source_type: str
    distance: float
    kill_type: str
    instigator_type: str


@dataclass(frozen=True)
class PlayerConnected:
    kind: ClassVar[str] = "player_connected"

    timestamp: int
    player_id: int
    player_name: str
    player_guid: str
    profile_name: str
    platform: str
    platform_type: str

    @property
    def identity(self) -> PlayerIdentity:
        return PlayerIdentity(self.player_id, self.player_guid, self.player_name)


ExtractedEvent = Union[ChatMessage, EditorAction, PlayerKilled, PlayerConnected]


@dataclass(frozen=True)
class RoundBoundary:
    """Published by the game-state source when a round starts or ends."""
    kind: ClassVar[str] = "round_boundary"

    phase: str = "game_start"


@dataclass(frozen=True)
class TeamkillIncident:
    timestamp: float
    offender: PlayerIdentity
    victim_name: str
    weapon: str


class PunishmentKind(str, Enum):
    WARN = "warn"
    KICK = "kick"
    BAN = "ban"


@dataclass(frozen=True)
class PunishmentDecision:
    """A disciplinary action a tracker decided on and the executor carried out.

    Attributes
    ----------
    action : PunishmentKind
        Warn, kick or ban.
    offender : PlayerIdentity
        The punished player.
    reason : str
        Human-readable reason.
    duration_hours : int or None
        Ban length; ``None`` for warnings and kicks.
    source : str
        Name of the tracker that made the decision.
    """
    kind: ClassVar[str] = "punishment"

    action: PunishmentKind
    offender: PlayerIdentity
    reason: str
    duration_hours: Optional[int] = None
    source: str = ""


__all__ = [
    "LogLine",
    "PlayerIdentity",
    "ChatMessage",
    "EditorAction",
    "PlayerRef",
    "PlayerKilled",
    "PlayerConnected",
    "ExtractedEvent",
    "RoundBoundary",
    "TeamkillIncident",
    "PunishmentKind",
    "PunishmentDecision",
]
