import pytest

from conftest import kill_line
from reforger_tk_guard.bus import EventBus
from reforger_tk_guard.errors import PersistenceFailure
from reforger_tk_guard.extractors import extract_event
from reforger_tk_guard.recorder import EventRecorder
from test_extractors import CHAT, CONNECTED, EDITOR


class FakeEventStore:
    def __init__(self, fail_kills: bool = False):
        self.saved = []
        self.fail_kills = fail_kills

    async def save_chat_message(self, server_id, ev):
        self.saved.append(("chat", server_id, ev))

    async def save_editor_action(self, server_id, ev):
        self.saved.append(("gm", server_id, ev))

    async def save_player_kill(self, server_id, ev):
        if self.fail_kills:
            raise PersistenceFailure("table locked")
        self.saved.append(("kill", server_id, ev))

    async def save_player_connection(self, server_id, ev):
        self.saved.append(("conn", server_id, ev))


@pytest.mark.asyncio
async def test_recorder_routes_each_event_kind():
    store = FakeEventStore()
    bus = EventBus()
    recorder = EventRecorder(store, server_id="srv-1")
    recorder.attach(bus)
    for line in (CHAT, EDITOR, kill_line(), CONNECTED):
        bus.publish(extract_event(line))
    await bus.drain()
    assert [s[0] for s in store.saved] == ["chat", "gm", "kill", "conn"]
    assert all(s[1] == "srv-1" for s in store.saved)
    assert recorder.saved == 4


@pytest.mark.asyncio
async def test_recorder_failure_is_counted_not_raised():
    store = FakeEventStore(fail_kills=True)
    recorder = EventRecorder(store)
    await recorder.record(extract_event(kill_line()))
    await recorder.record(extract_event(CHAT))
    assert (recorder.saved, recorder.failed) == (1, 1)


@pytest.mark.asyncio
async def test_recorder_close_unsubscribes():
    bus = EventBus()
    store = FakeEventStore()
    recorder = EventRecorder(store)
    recorder.attach(bus)
    recorder.close()
    bus.publish(extract_event(CHAT))
    await bus.drain()
    assert store.saved == []
