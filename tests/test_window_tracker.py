import asyncio

import pytest

from conftest import kill_line
from reforger_tk_guard.bus import EventBus
from reforger_tk_guard.config import WindowTrackerConfig
from reforger_tk_guard.events import PunishmentDecision
from reforger_tk_guard.executor import PunishmentExecutor
from reforger_tk_guard.extractors import extract_event
from reforger_tk_guard.teamkill import to_incident
from reforger_tk_guard.window_tracker import WindowEscalationTracker


class FakeClock:
    def __init__(self, now: float = 10_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += minutes * 60


def make_tracker(channel, clock, **overrides):
    cfg = WindowTrackerConfig(enabled=True, **overrides)
    tracker = WindowEscalationTracker(PunishmentExecutor(channel, timeout=1), cfg, clock=clock)
    bus = EventBus()
    tracker.attach(bus)
    return tracker, bus


async def tk(bus, **kwargs):
    bus.publish(extract_event(kill_line(**kwargs)))
    await bus.drain()


@pytest.mark.asyncio
async def test_spaced_incidents_never_kick(channel):
    clock = FakeClock()
    tracker, bus = make_tracker(channel, clock, limit=5, window_minutes=20)
    for _ in range(5):
        await tk(bus)
        clock.advance(25)
    assert channel.kicks == []
    assert len(channel.warns) == 5
    assert all(w.endswith('(1/5)"') for w in channel.warns)


@pytest.mark.asyncio
async def test_burst_kicks_once_and_clears(channel):
    clock = FakeClock()
    tracker, bus = make_tracker(channel, clock, limit=5, window_minutes=20)
    decisions = []
    bus.subscribe(PunishmentDecision.kind, decisions.append)
    for _ in range(5):
        await tk(bus)
        clock.advance(2)
    assert channel.kicks == ["#kick 7"]
    assert len(channel.warns) == 5
    assert channel.warns[-1].endswith('(5/5)"')
    assert tracker.incidents_for("guid-rex") == []
    assert tracker.tracked_offenders == 0
    assert len(decisions) == 1
    assert decisions[0].source == "window"


@pytest.mark.asyncio
async def test_old_incidents_fall_out_of_window(channel):
    clock = FakeClock()
    tracker, bus = make_tracker(channel, clock, limit=3, window_minutes=20)
    await tk(bus)
    clock.advance(15)
    await tk(bus)
    clock.advance(10)
    await tk(bus)
    assert channel.kicks == []
    assert len(tracker.incidents_for("guid-rex")) == 2


@pytest.mark.asyncio
async def test_concurrent_burst_kicks_exactly_once(channel):
    clock = FakeClock()
    tracker, bus = make_tracker(channel, clock, limit=2)
    ev = extract_event(kill_line())
    for _ in range(3):
        bus.publish(ev)
    await bus.drain()
    assert channel.kicks == ["#kick 7"]
    assert len(tracker.incidents_for("guid-rex")) == 1


def test_sweep_removes_stale_offenders(channel):
    clock = FakeClock()
    tracker, _ = make_tracker(channel, clock, window_minutes=20)
    asyncio.run(tracker.handle_incident(to_incident(extract_event(kill_line()), clock())))
    assert tracker.tracked_offenders == 1
    clock.advance(10)
    assert tracker.sweep() == 0
    clock.advance(11)
    assert tracker.sweep() == 1
    assert tracker.tracked_offenders == 0


@pytest.mark.asyncio
async def test_periodic_sweep_runs_without_new_events(channel):
    clock = FakeClock()
    tracker, bus = make_tracker(channel, clock, window_minutes=20, sweep_seconds=0.01)
    await tk(bus)
    tracker.start()
    clock.advance(30)
    await asyncio.sleep(0.05)
    assert tracker.tracked_offenders == 0
    tracker.close()


@pytest.mark.asyncio
async def test_disqualified_kill_is_not_tracked(channel):
    tracker, bus = make_tracker(channel, FakeClock(), limit=1)
    await tk(bus, weapon="unknown")
    await tk(bus, killer_name="AI", killer_guid="AI", killer_id=-1)
    assert tracker.tracked_offenders == 0
    assert channel.sent == []


@pytest.mark.asyncio
async def test_close_stops_sweep_and_clears_state(channel):
    clock = FakeClock()
    tracker, bus = make_tracker(channel, clock, sweep_seconds=0.01)
    await tk(bus)
    tracker.start()
    assert tracker.sweeping
    tracker.close()
    assert not tracker.sweeping
    assert tracker.tracked_offenders == 0
    assert bus.handler_count("player_killed") == 0
