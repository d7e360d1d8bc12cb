import pytest

from conftest import kill_line
from reforger_tk_guard.events import ChatMessage, EditorAction, PlayerConnected, PlayerKilled
from reforger_tk_guard.extractors import (
    ChatMessageExtractor,
    EditorActionExtractor,
    PlayerConnectedExtractor,
    PlayerKilledExtractor,
    extract_event,
    split_csv_field,
)


CHAT = "1712000000|ChatMessageEvent:playerId=3:playerName=Rex:playerGUID=guid-rex:channelId=1:message=hello: all"
EDITOR = (
    "1712000001|EditorActionEvent:playerId=4:playerName=GM Ann:playerGUID=guid-ann"
    ":action=SCR_DeleteSelectedContextAction:hoveredEntityComponentName=BTR"
    ":hoveredEntityComponentOwnerId=-1"
    ":selectedEntityComponentsNames=BTR, UAZ:selectedEntityComponentsOwnersIds=12, 13"
)
CONNECTED = (
    "1712000002|PlayerConnectedEvent:playerId=5:playerName=Kim:playerGUID=guid-kim"
    ":profileName=kim_tv:platform=platform-playstation"
)


def test_parse_chat_line():
    ev = extract_event(CHAT)
    assert isinstance(ev, ChatMessage)
    assert ev.timestamp == 1712000000
    assert ev.player_id == 3
    assert ev.player_guid == "guid-rex"
    assert ev.channel_id == 1
    assert ev.channel_type == "Faction"
    assert ev.message == "hello: all"


@pytest.mark.parametrize(
    "channel_id,expected",
    [(0, "Global"), (1, "Faction"), (2, "Group"), (3, "Vehicle"), (4, "Local"), (17, "Unknown")],
)
def test_chat_channel_types(channel_id, expected):
    assert ChatMessageExtractor().channel_type(channel_id) == expected


def test_parse_editor_action_line():
    ev = extract_event(EDITOR)
    assert isinstance(ev, EditorAction)
    assert ev.action_type == "Delete Entity"
    assert ev.hovered_entity_owner_id == -1
    assert ev.selected_entity_names == ("BTR", "UAZ")
    assert ev.selected_entity_owner_ids == (12, 13)
    assert ev.raw_selected_names == "BTR, UAZ"


def test_editor_action_unknown_selection_and_action():
    line = EDITOR.replace("SCR_DeleteSelectedContextAction", "SCR_CustomAction")
    line = line.replace("BTR, UAZ", "unknown").replace("12, 13", "unknown")
    ev = EditorActionExtractor().extract(line)
    assert ev.action_type == "SCR_CustomAction"
    assert ev.selected_entity_names == ("unknown",)
    assert ev.selected_entity_owner_ids == ("unknown",)


def test_split_csv_field():
    assert split_csv_field(None) == ("unknown",)
    assert split_csv_field("  ") == ("unknown",)
    assert split_csv_field("a , b,c") == ("a", "b", "c")


def test_parse_player_killed_line():
    ev = extract_event(kill_line())
    assert isinstance(ev, PlayerKilled)
    assert ev.killer.id == 7
    assert ev.killer.guid == "guid-rex"
    assert ev.killer.control_type == "Player"
    assert ev.victim.name == "Bob"
    assert ev.friendly_fire is True
    assert ev.team_kill is False
    assert ev.weapon == "M16A2"
    assert ev.weapon_source_type == "Infantry Weapon"
    assert ev.distance == 12.5
    assert ev.kill_type == "Friendly Fire"


@pytest.mark.parametrize(
    "kwargs,expected",
    [
        ({"killer_name": "World", "killer_guid": "World"}, "Environmental Death"),
        ({"killer_name": "AI", "killer_guid": "AI", "killer_id": -1}, "Friendly AI Kill"),
        ({"killer_name": "AI", "killer_guid": "AI", "killer_id": -1, "friendly_fire": "false"}, "AI Kill"),
        ({"friendly_fire": "false", "team_kill": "true"}, "Team Kill"),
        ({"friendly_fire": "false"}, "Player Kill"),
    ],
)
def test_kill_types(kwargs, expected):
    assert extract_event(kill_line(**kwargs)).kill_type == expected


def test_unknown_control_code_passes_through():
    line = kill_line().replace("killerControl=PLAYER", "killerControl=SPECTATOR")
    assert extract_event(line).killer.control_type == "SPECTATOR"


@pytest.mark.parametrize("distance", ["far", "nan", "inf", "-inf"])
def test_garbled_distance_is_declined(distance):
    line = kill_line(distance=distance)
    extractor = PlayerKilledExtractor()
    assert extractor.matches(line)
    assert extractor.extract(line) is None


def test_parse_connected_line():
    ev = extract_event(CONNECTED)
    assert isinstance(ev, PlayerConnected)
    assert ev.profile_name == "kim_tv"
    assert ev.platform_type == "PlayStation"
    assert PlayerConnectedExtractor().platform_type("platform-switch") == "platform-switch"


def test_extract_is_deterministic():
    for line in (CHAT, EDITOR, kill_line(), CONNECTED):
        assert extract_event(line) == extract_event(line)


def test_chat_wins_over_embedded_kill_line():
    line = f"1712000003|ChatMessageEvent:playerId=3:playerName=Rex:playerGUID=guid-rex:channelId=0:message={kill_line()}"
    assert PlayerKilledExtractor().matches(line)
    ev = extract_event(line)
    assert isinstance(ev, ChatMessage)
    assert ev.channel_type == "Global"


def test_unrelated_line_does_not_match():
    assert extract_event("12:00:01 SCRIPT : Game started") is None
