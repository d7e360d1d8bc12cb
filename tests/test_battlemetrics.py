import json
from datetime import datetime, timezone

import httpx
import pytest

from reforger_tk_guard.battlemetrics import BanRequest, BattleMetricsClient, build_ban_payload
from reforger_tk_guard.errors import RemoteApiFailure


REQUEST = BanRequest(
    reason="Intentional Teamkilling - banned for 24 hours",
    note="Automated",
    expires=datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
    auto_add_enabled=False,
    native_enabled=False,
    org_wide=True,
)


def test_build_ban_payload_shape():
    payload = build_ban_payload("guid-rex", REQUEST, organization_id="42", ban_list_id="list-1")
    attrs = payload["data"]["attributes"]
    assert attrs["expires"] == "2025-01-02T03:04:05.000Z"
    assert attrs["permanent"] is False
    assert attrs["orgWide"] is True
    assert attrs["identifiers"] == [{"type": "reforgerUUID", "identifier": "guid-rex", "manual": True}]
    assert payload["data"]["relationships"]["organization"]["data"]["id"] == "42"
    assert payload["data"]["relationships"]["banList"]["data"]["id"] == "list-1"


@pytest.mark.asyncio
async def test_create_ban_returns_id():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"data": {"type": "ban", "id": "b-77"}})

    client = BattleMetricsClient("tok", base_url="https://bm.test", transport=httpx.MockTransport(handler))
    try:
        assert await client.create_ban("guid-rex", REQUEST) == "b-77"
    finally:
        await client.aclose()
    assert seen["auth"] == "Bearer tok"
    assert seen["body"]["data"]["attributes"]["reason"] == REQUEST.reason


@pytest.mark.asyncio
async def test_http_error_becomes_remote_api_failure():
    client = BattleMetricsClient(
        "tok", base_url="https://bm.test", transport=httpx.MockTransport(lambda r: httpx.Response(500))
    )
    try:
        with pytest.raises(RemoteApiFailure):
            await client.create_ban("guid-rex", REQUEST)
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_player_note_resolves_player_first():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append((request.method, request.url.path))
        if request.method == "GET":
            return httpx.Response(200, json={"data": [{"type": "player", "id": "555"}]})
        return httpx.Response(201, json={"data": {"type": "playerNote", "id": "n-1"}})

    client = BattleMetricsClient("tok", base_url="https://bm.test", transport=httpx.MockTransport(handler))
    try:
        await client.create_player_note("guid-rex", "kicked")
    finally:
        await client.aclose()
    assert calls == [("GET", "/players"), ("POST", "/players/555/relationships/notes")]


@pytest.mark.asyncio
async def test_note_for_unknown_player_fails():
    client = BattleMetricsClient(
        "tok", base_url="https://bm.test", transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"data": []}))
    )
    try:
        with pytest.raises(RemoteApiFailure):
            await client.create_player_note("guid-nobody", "kicked")
    finally:
        await client.aclose()
