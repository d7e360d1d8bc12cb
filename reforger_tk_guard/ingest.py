"""Wiring and CLI entrypoints for the teamkill guard.

This module assembles the pipeline (dispatcher, bus, trackers, executor,
persistence, notifications) from :func:`~reforger_tk_guard.config.load_config`
and offers two workflows:

1. ``replay``: feed every line of an existing console log through the
   pipeline, e.g. to check thresholds against a past session.
2. ``watch``: follow a growing console log and process lines as they are
   appended.

The in-game command channel (RCON) is supplied by the embedding
application through :class:`TkGuard`; the CLI runs with a channel that
only logs the commands it would send.

Usage
-----
``python -m reforger_tk_guard.ingest replay console.log``
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import AsyncIterator, Iterable, Optional

import pymysql

from . import logs
from .battlemetrics import BattleMetricsClient
from .bus import EventBus
from .config import AppConfig, load_config
from .db import EventStore, PunishmentStore, get_conn, init_schema
from .dispatcher import LineDispatcher
from .executor import CommandChannel, LoggingCommandChannel, PunishmentExecutor
from .notifier import DiscordNotifier
from .recorder import EventRecorder
from .round_tracker import RoundEscalationTracker
from .window_tracker import WindowEscalationTracker


class TkGuard:
    """The assembled pipeline.

    Parameters
    ----------
    cfg : AppConfig
        Loaded configuration.
    channel : CommandChannel
        In-game command channel used for ``#warn`` and ``#kick``.
    punishment_store : PunishmentStore, optional
        Kick/ban history; without it kicks are not recorded and never
        escalate to bans.
    event_store : EventStore, optional
        Parsed-event tables; without it events are not recorded.
    ban_client : BattleMetricsClient, optional
        Ban and note API.
    """

    def __init__(
        self,
        cfg: AppConfig,
        channel: CommandChannel,
        punishment_store: Optional[PunishmentStore] = None,
        event_store: Optional[EventStore] = None,
        ban_client: Optional[BattleMetricsClient] = None,
    ) -> None:
        self.cfg = cfg
        self.bus = EventBus()
        self.dispatcher = LineDispatcher(self.bus, stats_interval=cfg.server.stats_interval_seconds)
        self.punishment_store = punishment_store
        self.event_store = event_store
        self.ban_client = ban_client
        self.executor = PunishmentExecutor(
            channel,
            store=punishment_store,
            ban_client=ban_client,
            server_id=cfg.server.server_id,
            timeout=cfg.ban_api.timeout_seconds,
        )
        self.round_tracker: Optional[RoundEscalationTracker] = None
        self.window_tracker: Optional[WindowEscalationTracker] = None
        self.recorder: Optional[EventRecorder] = None
        self.notifier: Optional[DiscordNotifier] = None

        if cfg.round_tracker.enabled:
            self.round_tracker = RoundEscalationTracker(self.executor, cfg.round_tracker)
            self.round_tracker.attach(self.bus)
        if cfg.window_tracker.enabled:
            self.window_tracker = WindowEscalationTracker(self.executor, cfg.window_tracker)
            self.window_tracker.attach(self.bus)
        if event_store is not None:
            self.recorder = EventRecorder(event_store, cfg.server.server_id)
            self.recorder.attach(self.bus)
        if cfg.discord.webhook_url:
            self.notifier = DiscordNotifier(cfg.discord.webhook_url, cfg.server.server_name)
            self.notifier.attach(self.bus)

    async def start(self) -> None:
        self.dispatcher.start()
        if self.window_tracker is not None:
            self.window_tracker.start()

    async def stop(self) -> None:
        """Flush queued lines and handlers, then tear everything down."""
        await self.dispatcher.join()
        await self.bus.drain()
        await self.dispatcher.stop()
        if self.round_tracker is not None:
            self.round_tracker.close()
        if self.window_tracker is not None:
            self.window_tracker.close()
        if self.recorder is not None:
            self.recorder.close()
        if self.notifier is not None:
            await self.notifier.close()
        if self.ban_client is not None:
            await self.ban_client.aclose()
        for store in (self.punishment_store, self.event_store):
            if store is not None:
                store.close()


def build_guard(cfg: AppConfig, channel: Optional[CommandChannel] = None, use_db: bool = True) -> TkGuard:
    """Create a :class:`TkGuard` with persistence and ban API from ``cfg``.

    Raises
    ------
    pymysql.MySQLError
        If ``use_db`` is set and the database is unreachable.
    """
    punishment_store = event_store = None
    if use_db:
        conn = get_conn(cfg.db)
        init_schema(conn)
        punishment_store = PunishmentStore(conn)
        event_store = EventStore(get_conn(cfg.db))
    ban_client = None
    if cfg.ban_api.token:
        ban_client = BattleMetricsClient(
            cfg.ban_api.token,
            base_url=cfg.ban_api.base_url,
            organization_id=cfg.ban_api.organization_id,
            ban_list_id=cfg.ban_api.ban_list_id,
            timeout=cfg.ban_api.timeout_seconds,
        )
    return TkGuard(
        cfg,
        channel or LoggingCommandChannel(),
        punishment_store=punishment_store,
        event_store=event_store,
        ban_client=ban_client,
    )


def _iter_lines_from_text(text: str) -> Iterable[str]:
    """Yield non-empty lines with trailing line breaks removed."""
    for line in text.splitlines():
        s = line.rstrip("\r\n")
        if s.strip():
            yield s


class _LogTail:
    """Blocking access to a followed log file, used from worker threads."""

    def __init__(self, path: Path, from_start: bool) -> None:
        self.path = path
        self.fh = path.open("r", encoding="utf-8", errors="ignore")
        if not from_start:
            self.fh.seek(0, 2)

    def poll(self) -> tuple[str, bool]:
        """Return new text and whether the file was reopened after truncation."""
        chunk = self.fh.read()
        if chunk:
            return chunk, False
        if self.path.exists() and self.path.stat().st_size < self.fh.tell():
            self.fh.close()
            self.fh = self.path.open("r", encoding="utf-8", errors="ignore")
            return self.fh.read(), True
        return "", False

    def close(self) -> None:
        self.fh.close()


async def follow(path: Path, from_start: bool = False, poll_interval: float = 0.5) -> AsyncIterator[str]:
    """Yield complete lines appended to ``path``; reopen on truncation.

    File reads and stats run in a worker thread.
    """
    tail = await asyncio.to_thread(_LogTail, path, from_start)
    partial = ""
    try:
        while True:
            chunk, reopened = await asyncio.to_thread(tail.poll)
            if reopened:
                partial = ""
            if not chunk:
                await asyncio.sleep(poll_interval)
                continue
            *complete, partial = (partial + chunk).split("\n")
            for line in complete:
                line = line.rstrip("\r")
                if line.strip():
                    yield line
    finally:
        tail.close()


async def _replay(guard: TkGuard, lines: Iterable[str]) -> int:
    await guard.start()
    try:
        count = guard.dispatcher.feed_many(lines)
    finally:
        await guard.stop()
    guard.dispatcher.log_stats()
    return count


async def _watch(guard: TkGuard, path: Path, from_start: bool) -> None:
    await guard.start()
    try:
        async for line in follow(path, from_start=from_start):
            guard.dispatcher.feed(line)
    finally:
        await guard.stop()


def _build_or_exit(args) -> TkGuard:
    cfg = load_config()
    logs.init_logging(cfg.log_level, json_lines=cfg.log_json)
    try:
        return build_guard(cfg, use_db=not args.no_db)
    except pymysql.MySQLError as e:
        print(f"Cannot connect to MySQL: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_replay(args) -> None:
    """CLI command: process an existing log file."""
    p = Path(args.path)
    if not p.exists():
        print(f"File not found: {p}", file=sys.stderr)
        sys.exit(1)
    guard = _build_or_exit(args)
    text = p.read_text(encoding="utf-8", errors="ignore")
    count = asyncio.run(_replay(guard, _iter_lines_from_text(text)))
    print(f"Processed {count} lines from {p}")


def cmd_watch(args) -> None:
    """CLI command: follow a growing log file until interrupted."""
    cfg_path = args.path
    if not cfg_path:
        cfg_path = load_config().server.log_path
    if not cfg_path:
        print("Provide a log path or set LOG_PATH", file=sys.stderr)
        sys.exit(1)
    p = Path(cfg_path)
    if not p.exists():
        print(f"File not found: {p}", file=sys.stderr)
        sys.exit(1)
    guard = _build_or_exit(args)
    try:
        asyncio.run(_watch(guard, p, args.from_start))
    except KeyboardInterrupt:
        pass


def build_argparser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser with subcommands.
    """
    p = argparse.ArgumentParser(prog="reforger-tk-guard", description="Teamkill escalation from Arma Reforger console logs")
    p.add_argument("--no-db", action="store_true", help="Run without MySQL (no records, no ban escalation)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_replay = sub.add_parser("replay", help="Process an existing console log")
    p_replay.add_argument("path", help="Path to the console log")
    p_replay.set_defaults(func=cmd_replay)

    p_watch = sub.add_parser("watch", help="Follow a growing console log")
    p_watch.add_argument("path", nargs="?", default=None, help="Path to the console log (default: LOG_PATH)")
    p_watch.add_argument("--from-start", action="store_true", help="Process existing content before following")
    p_watch.set_defaults(func=cmd_watch)

    return p


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint.

    Parameters
    ----------
    argv : list of str, optional
        Argument vector for parsing. If ``None``, defaults to
        ``sys.argv[1:]``.
    """
    p = build_argparser()
    args = p.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
