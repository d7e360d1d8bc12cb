"""Sliding-window teamkill auto-kick.

Each qualifying teamkill is appended to the offender's incident list and
entries older than the trailing window are dropped. Every incident warns
the player with the in-window count; reaching the limit kicks the player
and clears the list. There is no ban escalation here.

A periodic sweep prunes every tracked offender, so players who stop
teamkilling mid-window do not stay in memory.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional

from . import logs
from .bus import EventBus
from .config import WindowTrackerConfig
from .events import PlayerKilled, PunishmentDecision, PunishmentKind, TeamkillIncident
from .executor import PunishmentExecutor
from .teamkill import to_incident


class WindowEscalationTracker:
    """Kick players who reach ``limit`` teamkills within ``window_minutes``.

    Parameters
    ----------
    executor : PunishmentExecutor
        Boundary used for warnings and kicks.
    config : WindowTrackerConfig, optional
        Limit, window, sweep interval and warning text.
    clock : callable, optional
        Monotonic time source in seconds.
    """

    name = "window"

    def __init__(
        self,
        executor: PunishmentExecutor,
        config: Optional[WindowTrackerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.executor = executor
        self.config = config or WindowTrackerConfig()
        self.clock = clock
        self._log = logs.bind(tracker=self.name)
        self._incidents: dict[str, list[TeamkillIncident]] = {}
        self._sweep_task: Optional[asyncio.Task] = None
        self._bus: Optional[EventBus] = None

    @property
    def window_seconds(self) -> float:
        return self.config.window_minutes * 60.0

    def attach(self, bus: EventBus) -> None:
        self._bus = bus
        bus.subscribe(PlayerKilled.kind, self.on_player_killed)
        self._log.info(
            "window_tracker_attached",
            limit=self.config.limit,
            window_minutes=self.config.window_minutes,
            sweep_seconds=self.config.sweep_seconds,
        )

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())

    def close(self) -> None:
        """Stop the sweep, detach from the bus and drop all state."""
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            self._sweep_task = None
        if self._bus is not None:
            self._bus.unsubscribe(PlayerKilled.kind, self.on_player_killed)
            self._bus = None
        self._incidents.clear()

    @property
    def sweeping(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    def incidents_for(self, guid: str) -> list[TeamkillIncident]:
        return list(self._incidents.get(guid, ()))

    @property
    def tracked_offenders(self) -> int:
        return len(self._incidents)

    def _prune(self, guid: str, now: float) -> list[TeamkillIncident]:
        entries = self._incidents.get(guid)
        if entries is None:
            return []
        cutoff = now - self.window_seconds
        kept = [incident for incident in entries if incident.timestamp > cutoff]
        if kept:
            self._incidents[guid] = kept
        else:
            del self._incidents[guid]
        return kept

    async def on_player_killed(self, event: PlayerKilled) -> None:
        incident = to_incident(event, self.clock())
        if incident is None:
            return
        await self.handle_incident(incident)

    async def handle_incident(self, incident: TeamkillIncident) -> None:
        offender = incident.offender
        guid = offender.guid
        self._incidents.setdefault(guid, []).append(incident)
        recent = self._prune(guid, incident.timestamp)
        count = len(recent)
        limit = self.config.limit
        reached = count >= limit
        if reached:
            self._incidents.pop(guid, None)

        self._log.info(
            "friendly_fire_detected",
            player=offender.name,
            player_id=offender.player_id,
            victim=incident.victim_name,
            weapon=incident.weapon,
            count=count,
            limit=limit,
        )
        await self.executor.warn(offender, f"{self.config.warning_message} ({count}/{limit})")

        if not reached:
            self._log.warning(
                "tk_count",
                player=offender.name,
                player_id=offender.player_id,
                count=count,
                remaining=limit - count,
                window_minutes=self.config.window_minutes,
            )
            return

        self._log.warning("kick_decided", player=offender.name, guid=guid, count=count)
        for index, tk in enumerate(recent, start=1):
            minutes_ago = round((incident.timestamp - tk.timestamp) / 60)
            self._log.info("tk_history", player=offender.name, n=index, victim=tk.victim_name, weapon=tk.weapon, minutes_ago=minutes_ago)
        outcome = await self.executor.kick(offender)
        if outcome.ok and self._bus is not None:
            self._bus.publish(
                PunishmentDecision(
                    action=PunishmentKind.KICK,
                    offender=offender,
                    reason=f"{count} teamkills in {self.config.window_minutes:g} minutes",
                    source=self.name,
                )
            )

    def sweep(self, now: Optional[float] = None) -> int:
        """Prune every tracked offender; return how many were dropped."""
        if now is None:
            now = self.clock()
        removed = 0
        for guid in list(self._incidents):
            if guid in self._incidents and not self._prune(guid, now):
                removed += 1
        if removed:
            self._log.debug("tk_history_swept", players=removed)
        return removed

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_seconds)
            self.sweep()


__all__ = ["WindowEscalationTracker"]
