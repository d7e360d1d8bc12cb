"""Which kills count as teamkills for escalation."""

from __future__ import annotations

from typing import Optional

from .events import PlayerKilled, TeamkillIncident

SPECIAL_KILLERS = frozenset({"AI", "World"})
UNKNOWN_WEAPON = "unknown"


def is_qualifying_teamkill(event: PlayerKilled) -> bool:
    """Return ``True`` if ``event`` should count against the killer.

    The kill must be flagged friendly fire or team kill, made with a known
    weapon, by a real player: ``weapon=unknown`` is environmental or
    ambiguous damage, and AI or World killers (or non-positive killer
    ids) are never punished.
    """
    if not (event.friendly_fire or event.team_kill):
        return False
    if not event.weapon or event.weapon == UNKNOWN_WEAPON:
        return False
    killer = event.killer
    if not killer.guid or killer.guid in SPECIAL_KILLERS or killer.name in SPECIAL_KILLERS:
        return False
    if killer.id <= 0:
        return False
    return True


def to_incident(event: PlayerKilled, timestamp: float) -> Optional[TeamkillIncident]:
    if not is_qualifying_teamkill(event):
        return None
    return TeamkillIncident(
        timestamp=timestamp,
        offender=event.killer.identity,
        victim_name=event.victim.name,
        weapon=event.weapon,
    )


__all__ = ["is_qualifying_teamkill", "to_incident", "SPECIAL_KILLERS", "UNKNOWN_WEAPON"]
