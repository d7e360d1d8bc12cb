from conftest import kill_line
from reforger_tk_guard.events import PlayerIdentity, PunishmentDecision, PunishmentKind
from reforger_tk_guard.extractors import extract_event
from reforger_tk_guard.notifier import friendly_fire_embed, punishment_embed


def test_friendly_fire_embed_fields():
    embed = friendly_fire_embed(extract_event(kill_line()), "Main #1")
    assert embed.title == "Friendly Fire Incident"
    assert embed.description == "**Server:** Main #1"
    names = [f.name for f in embed.fields]
    assert names == ["Killer", "Victim", "Details"]
    assert "**GUID:** guid-rex" in embed.fields[0].value
    assert "**Distance:** 12.50m" in embed.fields[2].value
    assert "**Type:** Friendly Fire" in embed.fields[2].value


def test_ban_embed_includes_duration():
    decision = PunishmentDecision(
        PunishmentKind.BAN, PlayerIdentity(7, "guid-rex", "Rex"), "teamkilling", duration_hours=24, source="round"
    )
    embed = punishment_embed(decision, "Main #1")
    assert embed.title == "Teamkill Ban"
    assert embed.fields[-1].value == "24 hours"
    assert embed.footer.text == "round tracker"


def test_kick_embed_has_no_duration():
    decision = PunishmentDecision(PunishmentKind.KICK, PlayerIdentity(7, "guid-rex", "Rex"), "4 teamkills", source="window")
    embed = punishment_embed(decision, "Main #1")
    assert embed.title == "Teamkill Kick"
    assert [f.name for f in embed.fields] == ["Player", "Reason"]
