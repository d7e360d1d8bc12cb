"""Round-scoped teamkill escalation: warn, kick, then ban repeat offenders.

Per offender (keyed on the durable GUID) the tracker counts qualifying
teamkills for the current round. Reaching ``kick_limit`` kicks the
player; the kick is recorded and the persisted kick history of the last
``ban_kick_limit_days`` days decides whether a timed ban is requested.

Exactly-once guarantees come from two in-flight sets. A GUID enters the
kick set synchronously, before the first ``await`` of the event that
reached the limit, so duplicate or concurrent events for the same player
are ignored until the kick resolves. The ban set is claimed once the
kick history has been read and shows the threshold reached, so an
evaluation that sees a newer kick is never turned away by one that read
an older count. A GUID banned this round is not banned again.

A round boundary bumps an epoch; work started in an earlier round never
clears state of the current one.

After a kick resolves the offender's counter is deleted: a player who
keeps teamkilling in the same round starts a fresh count and can be
kicked again.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from . import logs
from .bus import EventBus
from .config import RoundTrackerConfig
from .events import (
    PlayerIdentity,
    PlayerKilled,
    PunishmentDecision,
    PunishmentKind,
    RoundBoundary,
    TeamkillIncident,
)
from .executor import PunishmentExecutor
from .teamkill import to_incident


class RoundEscalationTracker:
    """Escalate teamkills within a round from warning to kick to ban.

    Parameters
    ----------
    executor : PunishmentExecutor
        Boundary used for warnings, kicks, bans and records.
    config : RoundTrackerConfig, optional
        Limits and messages; library defaults when omitted.
    clock : callable, optional
        Returns the current time in seconds; used for incident timestamps.
    """

    name = "round"

    def __init__(
        self,
        executor: PunishmentExecutor,
        config: Optional[RoundTrackerConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.executor = executor
        self.config = config or RoundTrackerConfig()
        self.clock = clock
        self._log = logs.bind(tracker=self.name)
        self._counts: dict[str, int] = {}
        self._kicks_in_flight: set[str] = set()
        self._bans_in_flight: set[str] = set()
        self._banned: set[str] = set()
        self._round = 0
        self._closed = False
        self._bus: Optional[EventBus] = None

    # wiring

    def attach(self, bus: EventBus) -> None:
        self._bus = bus
        self._closed = False
        bus.subscribe(PlayerKilled.kind, self.on_player_killed)
        bus.subscribe(RoundBoundary.kind, self.on_round_boundary)
        self._log.info(
            "round_tracker_attached",
            kick_limit=self.config.kick_limit,
            ban_threshold=self.config.ban_kick_threshold,
            ban_window_days=self.config.ban_kick_limit_days,
        )

    def close(self) -> None:
        """Detach from the bus and drop all in-memory state."""
        if self._bus is not None:
            self._bus.unsubscribe(PlayerKilled.kind, self.on_player_killed)
            self._bus.unsubscribe(RoundBoundary.kind, self.on_round_boundary)
            self._bus = None
        self._closed = True
        self.reset()

    # state inspection

    def count_for(self, guid: str) -> int:
        return self._counts.get(guid, 0)

    def kick_pending(self, guid: str) -> bool:
        return guid in self._kicks_in_flight

    def ban_pending(self, guid: str) -> bool:
        return guid in self._bans_in_flight

    @property
    def tracked_offenders(self) -> int:
        return len(self._counts)

    # event handlers

    def on_round_boundary(self, event: RoundBoundary) -> None:
        self.reset()
        self._log.info("tk_tracking_reset", phase=event.phase)

    def reset(self) -> None:
        self._counts.clear()
        self._kicks_in_flight.clear()
        self._bans_in_flight.clear()
        self._banned.clear()
        self._round += 1

    async def on_player_killed(self, event: PlayerKilled) -> None:
        incident = to_incident(event, self.clock())
        if incident is None:
            return
        await self.handle_incident(incident)

    async def handle_incident(self, incident: TeamkillIncident) -> None:
        offender = incident.offender
        guid = offender.guid
        if guid in self._kicks_in_flight:
            self._log.info("tk_ignored_kick_pending", player=offender.name, guid=guid)
            return

        limit = self.config.kick_limit
        count = self._counts.get(guid, 0) + 1
        self._counts[guid] = count
        reached = count >= limit
        if reached:
            self._kicks_in_flight.add(guid)

        self._log.info(
            "friendly_fire_detected",
            player=offender.name,
            player_id=offender.player_id,
            victim=incident.victim_name,
            weapon=incident.weapon,
            count=count,
            limit=limit,
        )

        if self.config.warn_every:
            await self.executor.warn(offender, f"{self.config.warning_message} ({count}/{limit})")

        if reached:
            await self._kick(offender, count)
        else:
            self._log.warning(
                "tk_count",
                player=offender.name,
                player_id=offender.player_id,
                count=count,
                remaining=limit - count,
            )

    async def _kick(self, offender: PlayerIdentity, count: int) -> None:
        guid = offender.guid
        self._log.warning("kick_decided", player=offender.name, guid=guid, count=count)
        round_no = self._round
        try:
            outcome = await self.executor.kick(offender)
        finally:
            # a boundary while the kick was pending already cleared this state
            if self._round == round_no:
                self._kicks_in_flight.discard(guid)
                self._counts.pop(guid, None)
        if not outcome.ok or self._closed:
            return

        self._publish(
            PunishmentDecision(
                action=PunishmentKind.KICK,
                offender=offender,
                reason=f"{count} teamkills this round",
                source=self.name,
            )
        )
        await self.executor.record_action(offender, PunishmentKind.KICK)
        if self._closed:
            return
        if self.config.log_kicks:
            await self.executor.add_note(offender, self.config.log_kick_message)
            if self._closed:
                return
        await self.evaluate_ban_threshold(offender)

    async def evaluate_ban_threshold(self, offender: PlayerIdentity) -> bool:
        """Request a ban if the persisted kick history reaches the threshold.

        Returns
        -------
        bool
            ``True`` if a ban was requested and accepted by the ban API.
        """
        if not self.config.enable_bans or self._closed:
            return False
        guid = offender.guid
        days = self.config.ban_kick_limit_days
        kicks = await self.executor.count_recent_kicks(guid, days)
        if kicks is None or self._closed:
            return False
        threshold = self.config.ban_kick_threshold
        if kicks < threshold:
            self._log.info(
                "ban_not_required",
                player=offender.name,
                guid=guid,
                kicks=kicks,
                days=days,
                threshold=threshold,
            )
            return False

        # claimed only once a ban is due, never around the history read
        if guid in self._bans_in_flight or guid in self._banned:
            self._log.info("ban_check_skipped_pending", player=offender.name, guid=guid)
            return False
        self._bans_in_flight.add(guid)
        round_no = self._round
        try:
            hours = self.config.ban_duration_hours
            self._log.warning("ban_decided", player=offender.name, guid=guid, kicks=kicks, days=days, hours=hours)
            reason = self.config.ban_reason.replace("{{duration}}", f"{hours} hours")
            outcome = await self.executor.request_ban(
                offender,
                reason,
                hours,
                note=self.config.ban_message,
                auto_add=self.config.ban_auto_add,
                native=self.config.ban_native,
                org_wide=self.config.ban_org_wide,
            )
            if not outcome.ok:
                self._log.error("ban_not_applied", player=offender.name, guid=guid, detail=outcome.detail)
                return False
            if self._round == round_no:
                self._banned.add(guid)
            if self._closed:
                return True
            await self.executor.record_action(offender, PunishmentKind.BAN, duration=hours)
            self._publish(
                PunishmentDecision(
                    action=PunishmentKind.BAN,
                    offender=offender,
                    reason=reason,
                    duration_hours=hours,
                    source=self.name,
                )
            )
            return True
        finally:
            if self._round == round_no:
                self._bans_in_flight.discard(guid)

    def _publish(self, decision: PunishmentDecision) -> None:
        if self._bus is not None:
            self._bus.publish(decision)


__all__ = ["RoundEscalationTracker"]
