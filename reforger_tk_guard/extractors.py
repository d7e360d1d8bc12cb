"""Line extractors for the server console log.

Each extractor owns one regular expression and turns a matching line
into one typed event. Raw protocol codes (chat channel ids, platform
codes, control codes, weapon sources, editor action class names) are
resolved to display names through per-extractor lookup tables; unknown
codes pass through verbatim.

Example
-------
>>> from reforger_tk_guard.extractors import extract_event
>>> line = (
...     "1712|PlayerConnectedEvent:playerId=3:playerName=Rex:"
...     "playerGUID=abc-123:profileName=rex_tv:platform=platform-xbox"
... )
>>> extract_event(line).platform_type
'Xbox'
"""

from __future__ import annotations

import math
import re
from typing import Optional, Union

from .events import (
    ChatMessage,
    EditorAction,
    ExtractedEvent,
    PlayerConnected,
    PlayerKilled,
    PlayerRef,
)


UNKNOWN = "unknown"


def split_csv_field(text: Optional[str]) -> tuple[str, ...]:
    """Split a comma-separated sub-list field.

    Parameters
    ----------
    text : str or None
        Raw field content.

    Returns
    -------
    tuple of str
        Trimmed items, or ``("unknown",)`` when the field is empty or
        literally ``unknown``.
    """
    if not text or not text.strip() or text == UNKNOWN:
        return (UNKNOWN,)
    return tuple(item.strip() for item in text.split(","))


def _int_or_verbatim(text: str) -> Union[int, str]:
    try:
        return int(text, 10)
    except ValueError:
        return text


class LineExtractor:
    """Base class for a single-purpose line matcher.

    Subclasses set ``name`` and ``pattern`` and implement ``_build``.
    ``extract`` must only be called after ``matches`` returned ``True``
    for the same line; it returns ``None`` when a structurally matching
    line carries a field that cannot be coerced.
    """

    name: str = ""
    pattern: re.Pattern[str]

    def matches(self, line: str) -> bool:
        return self.pattern.search(line) is not None

    def extract(self, line: str) -> Optional[ExtractedEvent]:
        m = self.pattern.search(line)
        if not m:
            return None
        try:
            return self._build(m)
        except ValueError:
            return None

    def _build(self, m: re.Match[str]) -> ExtractedEvent:
        raise NotImplementedError


class ChatMessageExtractor(LineExtractor):
    name = "ChatMessageEvent"
    pattern = re.compile(
        r"(\d+)\|ChatMessageEvent:playerId=(\d+):playerName=([^:]+):playerGUID=([^:]+)"
        r":channelId=(\d+):message=(.*)"
    )

    CHANNEL_TYPES = {
        0: "Global",
        1: "Faction",
        2: "Group",
        3: "Vehicle",
        4: "Local",
    }

    def channel_type(self, channel_id: int) -> str:
        return self.CHANNEL_TYPES.get(channel_id, "Unknown")

    def _build(self, m: re.Match[str]) -> ChatMessage:
        channel_id = int(m.group(5))
        return ChatMessage(
            timestamp=int(m.group(1)),
            player_id=int(m.group(2)),
            player_name=m.group(3),
            player_guid=m.group(4),
            channel_id=channel_id,
            channel_type=self.channel_type(channel_id),
            message=m.group(6),
        )


class EditorActionExtractor(LineExtractor):
    name = "EditorActionEvent"
    pattern = re.compile(
        r"(\d+)\|EditorActionEvent:playerId=(\d+):playerName=([^:]+):playerGUID=([^:]+)"
        r":action=([^:]+):hoveredEntityComponentName=([^:]+)"
        r":hoveredEntityComponentOwnerId=(-?\d+)"
        r":selectedEntityComponentsNames=([^:]+):selectedEntityComponentsOwnersIds=(.+)"
    )

    ACTION_TYPES = {
        "SCR_DeleteSelectedContextAction": "Delete Entity",
        "SCR_LightningContextAction": "Lightning Strike",
        "SCR_NeutralizeEntityContextAction": "Neutralize Entity",
        "SCR_SpawnEntityContextAction": "Spawn Entity",
        "SCR_MoveEntityContextAction": "Move Entity",
        "SCR_RotateEntityContextAction": "Rotate Entity",
        "SCR_ScaleEntityContextAction": "Scale Entity",
        "SCR_CloneEntityContextAction": "Clone Entity",
        "SCR_GroupEntityContextAction": "Group Entities",
        "SCR_UngroupEntityContextAction": "Ungroup Entities",
    }

    def action_type(self, action: str) -> str:
        return self.ACTION_TYPES.get(action, action)

    def _build(self, m: re.Match[str]) -> EditorAction:
        raw_names = m.group(8)
        raw_owner_ids = m.group(9)
        owner_ids = tuple(
            item if item == UNKNOWN else _int_or_verbatim(item)
            for item in split_csv_field(raw_owner_ids)
        )
        action = m.group(5)
        return EditorAction(
            timestamp=int(m.group(1)),
            player_id=int(m.group(2)),
            player_name=m.group(3),
            player_guid=m.group(4),
            action=action,
            action_type=self.action_type(action),
            hovered_entity_name=m.group(6),
            hovered_entity_owner_id=int(m.group(7)),
            selected_entity_names=split_csv_field(raw_names),
            selected_entity_owner_ids=owner_ids,
            raw_selected_names=raw_names,
            raw_selected_owner_ids=raw_owner_ids,
        )


class PlayerKilledExtractor(LineExtractor):
    name = "PlayerKilledEvent"
    pattern = re.compile(
        r"(\d+)\|PlayerKilledEvent:killerId=(-?\d+):killerName=([^:]+):killerGUID=([^:]+)"
        r":victimId=(\d+):victimGUID=([^:]+):victimName=([^:]+)"
        r":friendlyFire=(true|false):teamKill=(true|false)"
        r":weapon=([^:]+):weaponSource=([^:]+):distance=([^:]+)"
        r":killerControl=([^:]+):victimControl=([^:]+)"
        r":killerDisguise=([^:]+):victimDisguise=([^:]+):instigatorType=(.+)"
    )

    CONTROL_TYPES = {
        "PLAYER": "Player",
        "UNLIMITED_EDITOR": "Game Master",
        "LIMITED_EDITOR": "Limited Editor",
        "NONE": "None",
        "AI": "AI Controller",
    }

    WEAPON_SOURCE_TYPES = {
        "Infantry": "Infantry Weapon",
        "Vehicle": "Vehicle Weapon",
        "Unknown": "Unknown Source",
    }

    def control_type(self, control: str) -> str:
        return self.CONTROL_TYPES.get(control, control)

    def weapon_source_type(self, source: str) -> str:
        return self.WEAPON_SOURCE_TYPES.get(source, source)

    @staticmethod
    def kill_type(killer_id: int, killer_name: str, killer_guid: str, friendly_fire: bool, team_kill: bool) -> str:
        if killer_name == "World" or killer_guid == "World":
            return "Environmental Death"
        if killer_name == "AI" or killer_guid == "AI" or killer_id <= 0:
            return "Friendly AI Kill" if friendly_fire else "AI Kill"
        if friendly_fire:
            return "Friendly Fire"
        if team_kill:
            return "Team Kill"
        return "Player Kill"

    def _build(self, m: re.Match[str]) -> PlayerKilled:
        killer_id = int(m.group(2))
        killer_name = m.group(3)
        killer_guid = m.group(4)
        friendly_fire = m.group(8) == "true"
        team_kill = m.group(9) == "true"
        # raises ValueError on a garbled distance, which drops the line
        distance = float(m.group(12))
        if not math.isfinite(distance):
            raise ValueError(f"distance is not finite: {m.group(12)!r}")
        weapon_source = m.group(11)
        killer = PlayerRef(
            id=killer_id,
            name=killer_name,
            guid=killer_guid,
            control=m.group(13),
            control_type=self.control_type(m.group(13)),
            disguise=m.group(15),
        )
        victim = PlayerRef(
            id=int(m.group(5)),
            name=m.group(7),
            guid=m.group(6),
            control=m.group(14),
            control_type=self.control_type(m.group(14)),
            disguise=m.group(16),
        )
        return PlayerKilled(
            timestamp=int(m.group(1)),
            killer=killer,
            victim=victim,
            friendly_fire=friendly_fire,
            team_kill=team_kill,
            weapon=m.group(10),
            weapon_source=weapon_source,
            weapon_source_type=self.weapon_source_type(weapon_source),
            distance=distance,
            kill_type=self.kill_type(killer_id, killer_name, killer_guid, friendly_fire, team_kill),
            instigator_type=m.group(17),
        )


class PlayerConnectedExtractor(LineExtractor):
    name = "PlayerConnectedEvent"
    pattern = re.compile(
        r"(\d+)\|PlayerConnectedEvent:playerId=(\d+):playerName=([^:]+):playerGUID=([^:]+)"
        r":profileName=([^:]+):platform=(.+)"
    )

    PLATFORM_TYPES = {
        "platform-windows": "PC (Windows)",
        "platform-xbox": "Xbox",
        "platform-playstation": "PlayStation",
        "platform-linux": "PC (Linux)",
        "platform-mac": "PC (Mac)",
    }

    def platform_type(self, platform: str) -> str:
        return self.PLATFORM_TYPES.get(platform, platform)

    def _build(self, m: re.Match[str]) -> PlayerConnected:
        platform = m.group(6)
        return PlayerConnected(
            timestamp=int(m.group(1)),
            player_id=int(m.group(2)),
            player_name=m.group(3),
            player_guid=m.group(4),
            profile_name=m.group(5),
            platform=platform,
            platform_type=self.platform_type(platform),
        )


def default_extractors() -> tuple[LineExtractor, ...]:
    """Return a fresh extractor set in dispatch priority order."""
    return (
        ChatMessageExtractor(),
        EditorActionExtractor(),
        PlayerKilledExtractor(),
        PlayerConnectedExtractor(),
    )


DEFAULT_EXTRACTORS = default_extractors()


def extract_event(line: str, extractors: tuple[LineExtractor, ...] = DEFAULT_EXTRACTORS) -> Optional[ExtractedEvent]:
    """Classify one line with the first matching extractor.

    Parameters
    ----------
    line : str
        Raw console log line.
    extractors : tuple of LineExtractor
        Extractors in priority order.

    Returns
    -------
    ExtractedEvent or None
        The event of the first extractor whose pattern matches, or
        ``None`` if none match or the matching extractor declined the line.
    """
    for extractor in extractors:
        if extractor.matches(line):
            return extractor.extract(line)
    return None


__all__ = [
    "LineExtractor",
    "ChatMessageExtractor",
    "EditorActionExtractor",
    "PlayerKilledExtractor",
    "PlayerConnectedExtractor",
    "DEFAULT_EXTRACTORS",
    "default_extractors",
    "extract_event",
    "split_csv_field",
]
