"""Minimal async client for the BattleMetrics ban and note API.

Only the two calls the escalation flow needs are implemented: creating a
timed ban for a Reforger UUID and adding a shared note to a player. Every
request is a single attempt bounded by the client timeout; HTTP and
transport errors surface as :class:`~reforger_tk_guard.errors.RemoteApiFailure`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import httpx

from .errors import RemoteApiFailure


@dataclass(frozen=True)
class BanRequest:
    """Body of a ban request.

    Attributes
    ----------
    reason : str
        Reason shown to the player.
    note : str
        Internal note attached to the ban.
    expires : datetime
        Expiry timestamp (timezone aware).
    permanent : bool
        Always ``False`` for automated bans.
    auto_add_enabled : bool
        Let the API attach new identifiers of the player automatically.
    native_enabled : bool
        Push the ban to the game server's native ban list.
    org_wide : bool
        Apply to every server of the organization.
    """
    reason: str
    note: str
    expires: datetime
    permanent: bool = False
    auto_add_enabled: bool = False
    native_enabled: bool = False
    org_wide: bool = True


def _iso(ts: datetime) -> str:
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.000Z")


def build_ban_payload(
    player_guid: str,
    request: BanRequest,
    organization_id: Optional[str] = None,
    ban_list_id: Optional[str] = None,
) -> dict[str, Any]:
    relationships: dict[str, Any] = {}
    if organization_id:
        relationships["organization"] = {"data": {"type": "organization", "id": organization_id}}
    if ban_list_id:
        relationships["banList"] = {"data": {"type": "banList", "id": ban_list_id}}
    return {
        "data": {
            "type": "ban",
            "attributes": {
                "reason": request.reason,
                "note": request.note,
                "expires": _iso(request.expires),
                "permanent": request.permanent,
                "autoAddEnabled": request.auto_add_enabled,
                "nativeEnabled": request.native_enabled,
                "orgWide": request.org_wide,
                "identifiers": [{"type": "reforgerUUID", "identifier": player_guid, "manual": True}],
            },
            "relationships": relationships,
        }
    }


class BattleMetricsClient:
    def __init__(
        self,
        token: str,
        base_url: str = "https://api.battlemetrics.com",
        organization_id: Optional[str] = None,
        ban_list_id: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.organization_id = organization_id
        self.ban_list_id = ban_list_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {token}", "Accept": "application/json"},
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise RemoteApiFailure(f"{method} {path} returned {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise RemoteApiFailure(f"{method} {path} failed: {e!r}") from e
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteApiFailure(f"{method} {path} returned invalid JSON") from e

    async def find_player_id(self, player_guid: str) -> str:
        """Resolve a Reforger UUID to the API's player id."""
        body = await self._request(
            "GET", "/players", params={"filter[search]": player_guid, "page[size]": 1}
        )
        data = body.get("data") or []
        if not data:
            raise RemoteApiFailure(f"no player found for {player_guid}")
        return str(data[0]["id"])

    async def create_ban(self, player_guid: str, request: BanRequest) -> str:
        """Create a ban and return its id."""
        payload = build_ban_payload(player_guid, request, self.organization_id, self.ban_list_id)
        body = await self._request("POST", "/bans", json=payload)
        ban_id = (body.get("data") or {}).get("id")
        if not ban_id:
            raise RemoteApiFailure("ban response carried no id")
        return str(ban_id)

    async def create_player_note(self, player_guid: str, note: str) -> None:
        player_id = await self.find_player_id(player_guid)
        payload: dict[str, Any] = {
            "data": {
                "type": "playerNote",
                "attributes": {"note": note, "shared": True, "clearanceLevel": 0, "expiresAt": None},
            }
        }
        if self.organization_id:
            payload["data"]["relationships"] = {
                "organization": {"data": {"type": "organization", "id": self.organization_id}}
            }
        await self._request("POST", f"/players/{player_id}/relationships/notes", json=payload)


__all__ = ["BanRequest", "BattleMetricsClient", "build_ban_payload"]
