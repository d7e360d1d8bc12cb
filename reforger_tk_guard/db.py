"""MySQL schema and persistence utilities.

This module initializes the database schema and provides the helpers
behind punishment bookkeeping (the ``tk_punishments`` table whose kick
history drives ban escalation) and the parsed-event log tables.

The plain functions take an open connection and are synchronous;
:class:`PunishmentStore` and :class:`EventStore` wrap them for use from
the event loop by running each call in a worker thread.

Examples
--------
>>> from reforger_tk_guard.config import load_config
>>> from reforger_tk_guard.db import get_conn, init_schema
>>> cfg = load_config()
>>> conn = get_conn(cfg.db)
>>> init_schema(conn)
>>> conn.close()
"""

from __future__ import annotations

import asyncio
import json
import threading
from contextlib import contextmanager
from typing import Any, Callable, Optional

import pymysql

from .config import DBConfig
from .errors import PersistenceFailure
from .events import ChatMessage, EditorAction, PlayerConnected, PlayerKilled


def get_conn(cfg: DBConfig) -> pymysql.connections.Connection:
    """Create a new MySQL connection.

    Parameters
    ----------
    cfg : DBConfig
        Database configuration.

    Returns
    -------
    pymysql.connections.Connection
        A live connection with ``autocommit=True`` and ``DictCursor``.
    """
    return pymysql.connect(
        host=cfg.host,
        port=cfg.port,
        user=cfg.user,
        password=cfg.password,
        database=cfg.database,
        autocommit=True,
        charset="utf8mb4",
        cursorclass=pymysql.cursors.DictCursor,
        connect_timeout=10,
        read_timeout=10,
        write_timeout=10,
    )


@contextmanager
def cursor(conn):
    """Context-managed cursor.

    Parameters
    ----------
    conn : pymysql.connections.Connection
        Open database connection.

    Yields
    ------
    pymysql.cursors.Cursor
        A cursor configured per ``get_conn``.
    """
    cur = conn.cursor()
    try:
        yield cur
    finally:
        cur.close()


_TABLES = (
    """
    CREATE TABLE IF NOT EXISTS tk_punishments (
      id INT AUTO_INCREMENT PRIMARY KEY,
      server_id VARCHAR(255) NULL,
      playerName VARCHAR(255) NULL,
      playerGUID VARCHAR(255) NULL,
      action VARCHAR(50) NULL,
      duration VARCHAR(50) NULL,
      created TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
      INDEX idx_guid_action_created (playerGUID, action, created)
    ) CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;
    """,
    """
    CREATE TABLE IF NOT EXISTS wcs_chat (
      id INT AUTO_INCREMENT PRIMARY KEY,
      server_id VARCHAR(255) NULL,
      timestamp BIGINT NOT NULL,
      playerId INT NOT NULL,
      playerName VARCHAR(255) NULL,
      playerGUID VARCHAR(255) NULL,
      channelId INT NOT NULL,
      channelType VARCHAR(50) NULL,
      message TEXT NULL,
      created TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
      INDEX idx_timestamp (timestamp),
      INDEX idx_player_guid (playerGUID),
      INDEX idx_channel (channelId)
    ) CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;
    """,
    """
    CREATE TABLE IF NOT EXISTS wcs_gm (
      id INT AUTO_INCREMENT PRIMARY KEY,
      server_id VARCHAR(255) NULL,
      timestamp BIGINT NOT NULL,
      playerId INT NOT NULL,
      playerName VARCHAR(255) NULL,
      playerGUID VARCHAR(255) NULL,
      action VARCHAR(255) NULL,
      actionType VARCHAR(255) NULL,
      hoveredEntityComponentName TEXT NULL,
      hoveredEntityComponentOwnerId INT NULL,
      selectedEntityNames TEXT NULL,
      selectedEntityOwnerIds TEXT NULL,
      selectedEntityComponentsNames TEXT NULL,
      selectedEntityComponentsOwnersIds TEXT NULL,
      created TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
      INDEX idx_timestamp (timestamp),
      INDEX idx_player_guid (playerGUID),
      INDEX idx_action (action)
    ) CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;
    """,
    """
    CREATE TABLE IF NOT EXISTS wcs_playerkills (
      id INT AUTO_INCREMENT PRIMARY KEY,
      server_id VARCHAR(255) NULL,
      timestamp BIGINT NOT NULL,
      killerId INT NOT NULL,
      killerName VARCHAR(255) NULL,
      killerGUID VARCHAR(255) NULL,
      killerControl VARCHAR(100) NULL,
      killerControlType VARCHAR(100) NULL,
      killerDisguise VARCHAR(100) NULL,
      victimId INT NOT NULL,
      victimName VARCHAR(255) NULL,
      victimGUID VARCHAR(255) NULL,
      victimControl VARCHAR(100) NULL,
      victimControlType VARCHAR(100) NULL,
      victimDisguise VARCHAR(100) NULL,
      friendlyFire BOOLEAN DEFAULT FALSE,
      teamKill BOOLEAN DEFAULT FALSE,
      weapon VARCHAR(255) NULL,
      weaponSource VARCHAR(100) NULL,
      weaponSourceType VARCHAR(100) NULL,
      distance FLOAT DEFAULT 0,
      killType VARCHAR(100) NULL,
      instigatorType VARCHAR(100) NULL,
      created TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
      INDEX idx_timestamp (timestamp),
      INDEX idx_killer_guid (killerGUID),
      INDEX idx_victim_guid (victimGUID),
      INDEX idx_kill_type (killType),
      INDEX idx_friendly_fire (friendlyFire)
    ) CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;
    """,
    """
    CREATE TABLE IF NOT EXISTS wcs_connections (
      id INT AUTO_INCREMENT PRIMARY KEY,
      server_id VARCHAR(255) NULL,
      timestamp BIGINT NOT NULL,
      playerId INT NOT NULL,
      playerName VARCHAR(255) NULL,
      playerGUID VARCHAR(255) NULL,
      profileName VARCHAR(255) NULL,
      platform VARCHAR(100) NULL,
      platformType VARCHAR(100) NULL,
      created TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
      INDEX idx_timestamp (timestamp),
      INDEX idx_player_guid (playerGUID)
    ) CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci;
    """,
)


def init_schema(conn) -> None:
    """Create required tables if they do not exist.

    Parameters
    ----------
    conn : pymysql.connections.Connection
        Open database connection.
    """
    with cursor(conn) as cur:
        for ddl in _TABLES:
            cur.execute(ddl)


def insert_punishment(
    conn,
    server_id: Optional[str],
    player_name: str,
    player_guid: str,
    action: str,
    duration: Optional[str] = None,
) -> int:
    """Record a kick or ban.

    Parameters
    ----------
    conn : pymysql.connections.Connection
        Open database connection.
    server_id : str or None
        Server the punishment happened on.
    player_name : str
        Player display name at the time of the punishment.
    player_guid : str
        Durable player identity.
    action : str
        ``'kick'`` or ``'ban'``.
    duration : str or None
        Ban length in hours; ``None`` for kicks.

    Returns
    -------
    int
        Primary key of the inserted row.
    """
    with cursor(conn) as cur:
        cur.execute(
            """
            INSERT INTO tk_punishments (server_id, playerName, playerGUID, action, duration)
            VALUES (%s, %s, %s, %s, %s)
            """,
            (server_id, player_name, player_guid, action, duration),
        )
        return int(cur.lastrowid)


def count_recent_actions(conn, player_guid: str, action: str, days: int) -> int:
    """Count punishments of one kind for a player within the last ``days`` days.

    The cutoff is computed by the server so it matches the clock that
    filled the ``created`` column.
    """
    with cursor(conn) as cur:
        cur.execute(
            """
            SELECT COUNT(*) AS c FROM tk_punishments
            WHERE playerGUID = %s AND action = %s AND created >= NOW() - INTERVAL %s DAY
            """,
            (player_guid, action, int(days)),
        )
        row = cur.fetchone()
        return int(row["c"]) if row else 0  # type: ignore[index]


def insert_chat_message(conn, server_id: Optional[str], ev: ChatMessage) -> None:
    with cursor(conn) as cur:
        cur.execute(
            """
            INSERT INTO wcs_chat (server_id, timestamp, playerId, playerName, playerGUID, channelId, channelType, message)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                server_id,
                ev.timestamp,
                ev.player_id,
                ev.player_name,
                ev.player_guid,
                ev.channel_id,
                ev.channel_type,
                ev.message,
            ),
        )


def insert_editor_action(conn, server_id: Optional[str], ev: EditorAction) -> None:
    with cursor(conn) as cur:
        cur.execute(
            """
            INSERT INTO wcs_gm (
              server_id, timestamp, playerId, playerName, playerGUID, action, actionType,
              hoveredEntityComponentName, hoveredEntityComponentOwnerId,
              selectedEntityNames, selectedEntityOwnerIds,
              selectedEntityComponentsNames, selectedEntityComponentsOwnersIds
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                server_id,
                ev.timestamp,
                ev.player_id,
                ev.player_name,
                ev.player_guid,
                ev.action,
                ev.action_type,
                ev.hovered_entity_name,
                ev.hovered_entity_owner_id,
                json.dumps(list(ev.selected_entity_names)),
                json.dumps(list(ev.selected_entity_owner_ids)),
                ev.raw_selected_names,
                ev.raw_selected_owner_ids,
            ),
        )


def insert_player_kill(conn, server_id: Optional[str], ev: PlayerKilled) -> None:
    with cursor(conn) as cur:
        cur.execute(
            """
            INSERT INTO wcs_playerkills (
              server_id, timestamp, killerId, killerName, killerGUID, killerControl, killerControlType, killerDisguise,
              victimId, victimName, victimGUID, victimControl, victimControlType, victimDisguise,
              friendlyFire, teamKill, weapon, weaponSource, weaponSourceType, distance, killType, instigatorType
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                server_id,
                ev.timestamp,
                ev.killer.id,
                ev.killer.name,
                ev.killer.guid,
                ev.killer.control,
                ev.killer.control_type,
                ev.killer.disguise,
                ev.victim.id,
                ev.victim.name,
                ev.victim.guid,
                ev.victim.control,
                ev.victim.control_type,
                ev.victim.disguise,
                ev.friendly_fire,
                ev.team_kill,
                ev.weapon,
                ev.weapon_source,
                ev.weapon_source_type,
                ev.distance,
                ev.kill_type,
                ev.instigator_type,
            ),
        )


def insert_player_connection(conn, server_id: Optional[str], ev: PlayerConnected) -> None:
    with cursor(conn) as cur:
        cur.execute(
            """
            INSERT INTO wcs_connections (server_id, timestamp, playerId, playerName, playerGUID, profileName, platform, platformType)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                server_id,
                ev.timestamp,
                ev.player_id,
                ev.player_name,
                ev.player_guid,
                ev.profile_name,
                ev.platform,
                ev.platform_type,
            ),
        )


class _ThreadedConnection:
    """One pymysql connection shared by worker-thread calls, one at a time."""

    def __init__(self, conn) -> None:
        self.conn = conn
        self._lock = threading.Lock()

    def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        with self._lock:
            try:
                self.conn.ping(reconnect=True)
                return fn(self.conn, *args)
            except pymysql.MySQLError as e:
                raise PersistenceFailure(f"{fn.__name__} failed: {e}") from e

    async def run(self, fn: Callable[..., Any], *args: Any) -> Any:
        return await asyncio.to_thread(self._call, fn, *args)

    def close(self) -> None:
        with self._lock:
            self.conn.close()


class PunishmentStore(_ThreadedConnection):
    """Async access to ``tk_punishments`` for the punishment executor."""

    async def insert_punishment(
        self,
        server_id: Optional[str],
        player_name: str,
        player_guid: str,
        action: str,
        duration: Optional[str] = None,
    ) -> int:
        return await self.run(insert_punishment, server_id, player_name, player_guid, action, duration)

    async def count_recent_actions(self, player_guid: str, action: str, days: int) -> int:
        return await self.run(count_recent_actions, player_guid, action, days)


class EventStore(_ThreadedConnection):
    """Async inserts into the parsed-event tables."""

    async def save_chat_message(self, server_id: Optional[str], ev: ChatMessage) -> None:
        await self.run(insert_chat_message, server_id, ev)

    async def save_editor_action(self, server_id: Optional[str], ev: EditorAction) -> None:
        await self.run(insert_editor_action, server_id, ev)

    async def save_player_kill(self, server_id: Optional[str], ev: PlayerKilled) -> None:
        await self.run(insert_player_kill, server_id, ev)

    async def save_player_connection(self, server_id: Optional[str], ev: PlayerConnected) -> None:
        await self.run(insert_player_connection, server_id, ev)
