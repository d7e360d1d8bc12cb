"""Line dispatcher: classify console lines and publish typed events.

Lines are consumed strictly in arrival order from a single queue. Each
line is offered to the extractors in priority order and the first match
wins; later extractors are never consulted for that line. Throughput is
summarized on a fixed interval, independently of line arrival.

Example
-------
>>> bus = EventBus()
>>> dispatcher = LineDispatcher(bus)
>>> dispatcher.process_line("not a game event") is None
True
>>> dispatcher.unmatched
1
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional

from . import logs
from .bus import EventBus
from .events import ExtractedEvent, LogLine
from .extractors import LineExtractor, default_extractors


class LineDispatcher:
    """Consume lines from a FIFO queue and publish extracted events.

    Parameters
    ----------
    bus : EventBus
        Bus receiving every extracted event.
    extractors : iterable of LineExtractor, optional
        Extractors in priority order; defaults to chat, editor action,
        player killed, player connected.
    stats_interval : float
        Seconds between throughput summaries.
    """

    def __init__(
        self,
        bus: EventBus,
        extractors: Optional[Iterable[LineExtractor]] = None,
        stats_interval: float = 60.0,
    ) -> None:
        self.bus = bus
        self.extractors: tuple[LineExtractor, ...] = tuple(extractors) if extractors is not None else default_extractors()
        self.stats_interval = stats_interval
        self.queue: asyncio.Queue[LogLine] = asyncio.Queue()
        self.matched = 0
        self.unmatched = 0
        self._seq = 0
        self._consumer: Optional[asyncio.Task] = None
        self._stats_task: Optional[asyncio.Task] = None

    def feed(self, text: str) -> LogLine:
        """Enqueue one raw line, stamping its arrival sequence number."""
        self._seq += 1
        line = LogLine(seq=self._seq, text=text)
        self.queue.put_nowait(line)
        return line

    def feed_many(self, lines: Iterable[str]) -> int:
        count = 0
        for text in lines:
            self.feed(text)
            count += 1
        return count

    def process_line(self, text: str) -> Optional[ExtractedEvent]:
        """Classify and publish a single line synchronously.

        Returns
        -------
        ExtractedEvent or None
            The published event, or ``None`` if the line was not a
            recognized game event or carried an uncoercible field.
        """
        for extractor in self.extractors:
            if not extractor.matches(text):
                continue
            event = extractor.extract(text)
            if event is None:
                self.unmatched += 1
                logs.debug("line_dropped", extractor=extractor.name)
                return None
            self.matched += 1
            self.bus.publish(event)
            return event
        self.unmatched += 1
        return None

    async def run(self) -> None:
        """Consume the queue forever; cancel the task to stop."""
        while True:
            line = await self.queue.get()
            try:
                self.process_line(line.text)
            finally:
                self.queue.task_done()

    def log_stats(self) -> tuple[int, int]:
        """Emit and reset the throughput counters.

        Returns
        -------
        tuple of (int, int)
            ``(lines, matched)`` for the elapsed interval.
        """
        lines = self.matched + self.unmatched
        matched = self.matched
        logs.info("parser_stats", lines_per_interval=lines, matching_lines=matched, interval_seconds=self.stats_interval)
        self.matched = 0
        self.unmatched = 0
        return lines, matched

    async def _stats_loop(self) -> None:
        while True:
            await asyncio.sleep(self.stats_interval)
            self.log_stats()

    def start(self) -> None:
        if self._consumer is None:
            self._consumer = asyncio.create_task(self.run())
        if self._stats_task is None:
            self._stats_task = asyncio.create_task(self._stats_loop())

    async def join(self) -> None:
        """Wait until every queued line has been processed."""
        await self.queue.join()

    async def stop(self) -> None:
        tasks = [t for t in (self._consumer, self._stats_task) if t is not None]
        self._consumer = None
        self._stats_task = None
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


__all__ = ["LineDispatcher"]
