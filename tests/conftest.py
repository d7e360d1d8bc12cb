import asyncio
import time
from typing import Iterator

import pytest
import pymysql

from reforger_tk_guard.config import load_config
from reforger_tk_guard.db import get_conn, init_schema, cursor


def _wait_for_mysql(host: str, port: int, user: str, password: str, database: str, timeout: int = 5) -> None:
    start = time.time()
    last_err = None
    while time.time() - start < timeout:
        try:
            conn = pymysql.connect(host=host, port=port, user=user, password=password, database=database)
            conn.close()
            return
        except Exception as e:  # noqa: BLE001 - broad during boot-up
            last_err = e
            time.sleep(1)
    raise RuntimeError(f"MySQL not ready after {timeout}s: {last_err}")


@pytest.fixture(scope="function")
def db_conn() -> Iterator[pymysql.connections.Connection]:
    """Yield a ready MySQL connection against the configured database.

    Skips when no database is reachable. In CI and docker-compose the
    ``MYSQL_*`` variables point at a service so the connection succeeds.
    """
    cfg = load_config()
    try:
        _wait_for_mysql(cfg.db.host, cfg.db.port, cfg.db.user, cfg.db.password, cfg.db.database)
    except RuntimeError as e:
        pytest.skip(str(e))
    conn = get_conn(cfg.db)
    init_schema(conn)
    try:
        yield conn
    finally:
        with cursor(conn) as cur:
            for tbl in ("tk_punishments", "wcs_chat", "wcs_gm", "wcs_playerkills", "wcs_connections"):
                cur.execute(f"TRUNCATE TABLE {tbl}")
        conn.close()


def kill_line(
    killer_id=7,
    killer_name="Rex",
    killer_guid="guid-rex",
    victim_id=9,
    victim_name="Bob",
    friendly_fire="true",
    team_kill="false",
    weapon="M16A2",
    distance="12.5",
    ts="1712000000",
):
    return (
        f"{ts}|PlayerKilledEvent:killerId={killer_id}:killerName={killer_name}:killerGUID={killer_guid}"
        f":victimId={victim_id}:victimGUID=guid-{victim_name.lower()}:victimName={victim_name}"
        f":friendlyFire={friendly_fire}:teamKill={team_kill}:weapon={weapon}:weaponSource=Infantry"
        f":distance={distance}:killerControl=PLAYER:victimControl=PLAYER"
        f":killerDisguise=US:victimDisguise=US:instigatorType=PLAYER"
    )


class FakeChannel:
    def __init__(self, connected: bool = True):
        self.connected = connected
        self.sent: list[str] = []
        self.gate: asyncio.Event | None = None

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def send_command(self, command: str) -> None:
        if self.gate is not None and command.startswith("#kick"):
            await self.gate.wait()
        self.sent.append(command)

    @property
    def warns(self) -> list[str]:
        return [c for c in self.sent if c.startswith("#warn")]

    @property
    def kicks(self) -> list[str]:
        return [c for c in self.sent if c.startswith("#kick")]


class FakeHistory:
    """In-memory stand-in for the punishment table."""

    def __init__(self, fail_inserts: bool = False):
        self.rows: list[dict] = []
        self.fail_inserts = fail_inserts

    async def insert_punishment(self, server_id, player_name, player_guid, action, duration=None) -> int:
        if self.fail_inserts:
            from reforger_tk_guard.errors import PersistenceFailure

            raise PersistenceFailure("insert failed")
        self.rows.append(
            {"server_id": server_id, "playerName": player_name, "playerGUID": player_guid, "action": action, "duration": duration}
        )
        return len(self.rows)

    async def count_recent_actions(self, player_guid, action, days) -> int:
        return sum(1 for r in self.rows if r["playerGUID"] == player_guid and r["action"] == action)


class FakeBanClient:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.bans: list[tuple] = []
        self.notes: list[tuple] = []
        self.gate: asyncio.Event | None = None

    async def create_ban(self, player_guid, request) -> str:
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            from reforger_tk_guard.errors import RemoteApiFailure

            raise RemoteApiFailure("ban rejected")
        self.bans.append((player_guid, request))
        return f"ban-{len(self.bans)}"

    async def create_player_note(self, player_guid, note) -> None:
        self.notes.append((player_guid, note))


@pytest.fixture
def channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def history() -> FakeHistory:
    return FakeHistory()


@pytest.fixture
def ban_client() -> FakeBanClient:
    return FakeBanClient()
