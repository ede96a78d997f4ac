"""Feed Comparison Engine - single-writer multiplexer over all feed events."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

from .config import ComparisonConfig
from .enrichment import ContentEnrichmentPool
from .errors import FeedCompareError, TransportError
from .models import (
    Classification,
    ContentResult,
    Contents,
    FeedMessage,
    FilterVerdict,
    IntervalStats,
    Source,
)
from .stats import ReportSink, StatisticsAggregator
from .table import CorrelationTable
from .variants import ContentFilter, FeedVariant
from .window import classify, next_window

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _Command:
    """A callable run inside the engine loop, acknowledged through a future."""

    action: Callable[[], Any]
    done: asyncio.Future


class FeedComparisonEngine:
    """
    Owns the Correlation Table and the window sets of one comparison run.

    Every mutation happens inside run(), a single asyncio task consuming:
    1. control commands (report/reset, clear-trail), always first
    2. content-enrichment results
    3. reference and comparator arrivals, whichever is ready

    Other tasks only talk to the engine through its queues. A malformed
    or failed message is logged and dropped; the loop keeps going.
    """

    def __init__(
        self,
        variant: FeedVariant,
        config: ComparisonConfig,
        sink: Optional[ReportSink] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the engine.

        Args:
            variant: Transaction or block variant (parsers, lookup, report)
            config: Comparison configuration
            sink: Optional record / missing-key sink for reports
            clock: Time source shared with the feed readers
        """
        self.variant = variant
        self.config = config
        self.clock = clock

        self.content_filter = ContentFilter(config.min_gas_price_wei, config.addresses)
        self.aggregator = StatisticsAggregator(config.ignore_delta, sink)
        self.enrichment: Optional[ContentEnrichmentPool] = None

        # Channels
        self.commands: "asyncio.Queue[_Command]" = asyncio.Queue()
        self.contents: "asyncio.Queue[ContentResult]" = asyncio.Queue(
            maxsize=config.enrichment_queue_size
        )
        self.feeds: Dict[Source, "asyncio.Queue[FeedMessage]"] = {
            Source.REFERENCE: asyncio.Queue(maxsize=config.feed_queue_size),
            Source.COMPARATOR: asyncio.Queue(maxsize=config.feed_queue_size),
        }
        self._feed_order: List[Source] = [Source.REFERENCE, Source.COMPARATOR]

        # State owned by the loop
        self.table = CorrelationTable()
        self.lead_seen: Set[str] = set()
        self.trail_seen: Set[str] = set()
        self.low_fee: Set[str] = set()
        self.high_delta: Set[str] = set()
        self.window = next_window(clock(), config.lead_time, config.interval)

        self.message_counts: Dict[Source, int] = {source: 0 for source in Source}
        self.intervals_completed = 0
        self._running = False

    @property
    def enrich(self) -> bool:
        """True when comparator hashes are resolved to contents before correlating."""
        return not self.config.exclude_contents

    def attach_enrichment(self, pool: ContentEnrichmentPool) -> None:
        self.enrichment = pool

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Consume events until stop() is called or the task is cancelled."""
        self._running = True
        logger.info(
            f"Comparison engine started ({self.variant.name}), "
            f"window opens at {self.window.open_at.isoformat()}"
        )
        try:
            while self._running:
                if not self.step():
                    # Idle: yield and poll again so commands are picked up promptly.
                    await asyncio.sleep(self.config.poll_interval)
        finally:
            self._running = False
            logger.info("Comparison engine stopped")

    def stop(self) -> None:
        self._running = False

    def step(self) -> bool:
        """
        Process at most one ready event, highest priority first.

        Returns:
            False if no queue had anything ready
        """
        try:
            command = self.commands.get_nowait()
        except asyncio.QueueEmpty:
            pass
        else:
            self._execute(command)
            return True

        try:
            result = self.contents.get_nowait()
        except asyncio.QueueEmpty:
            pass
        else:
            self._handle(self.process_content, result)
            return True

        for source in self._feed_order:
            try:
                message = self.feeds[source].get_nowait()
            except asyncio.QueueEmpty:
                continue
            self._feed_order.reverse()
            self._handle(self.process_arrival, message)
            return True

        return False

    def _execute(self, command: _Command) -> None:
        try:
            result = command.action()
        except Exception as e:
            logger.error(f"error in command: {e}")
            if not command.done.done():
                command.done.set_exception(e)
            return
        if not command.done.done():
            command.done.set_result(result)

    def _handle(self, handler: Callable[[Any], Any], item: Any) -> None:
        try:
            handler(item)
        except FeedCompareError as e:
            logger.error(f"error: {e}")
        except Exception as e:
            logger.error(f"Error processing message: {e}")

    # ------------------------------------------------------------------
    # Commands (request / acknowledgement through the command queue)
    # ------------------------------------------------------------------

    async def submit(self, action: Callable[[], Any]) -> Any:
        """Run action inside the engine loop and wait for its result."""
        done = asyncio.get_running_loop().create_future()
        await self.commands.put(_Command(action=action, done=done))
        return await done

    async def clear_trail(self) -> None:
        await self.submit(self._clear_trail)

    async def report_and_reset(self) -> IntervalStats:
        return await self.submit(self.snapshot_and_reset)

    def _clear_trail(self) -> None:
        logger.debug(f"Clearing {len(self.trail_seen)} trail hashes")
        self.trail_seen = set()

    def snapshot_and_reset(self) -> IntervalStats:
        """
        Compute the interval statistics and start the next interval.

        Must run inside the engine loop (through submit) so that no arrival
        is processed between the snapshot and the reset.
        """
        stats = self.aggregator.compute(self.table.snapshot(), self.low_fee, self.high_delta)
        self._drain()

        self.table.clear()
        self.lead_seen = set()
        self.low_fee = set()
        self.high_delta = set()
        self.window = next_window(self.clock(), self.config.lead_time, self.config.interval)
        self.intervals_completed += 1
        return stats

    def _drain(self) -> None:
        pending = self.enrichment.drain() if self.enrichment is not None else 0
        while True:
            try:
                self.contents.get_nowait()
            except asyncio.QueueEmpty:
                break
            pending += 1
        if pending:
            logger.debug(f"Discarded {pending} pending content lookups")

    # ------------------------------------------------------------------
    # Event processing
    # ------------------------------------------------------------------

    def process_arrival(self, message: FeedMessage) -> Optional[Classification]:
        """
        Handle one feed notification.

        Returns:
            The classification, or None if the arrival was filtered out or
            handed to the enrichment pool
        """
        source = message.source
        if message.error is not None:
            raise TransportError(
                f"failed to read message from {source.value} feed: {message.error}"
            )

        notification = self.variant.parse(source, message.data)
        key = notification.key
        timestamp = message.received_at
        self.message_counts[source] += 1
        logger.debug(f"got message at {timestamp.isoformat()} ({source.value}), hash: {key}")

        if self.window.is_lead(timestamp):
            self.lead_seen.add(key)
            return Classification.LEAD

        if self.enrich:
            if notification.contents is not None:
                if not self._accepts(key, notification.contents):
                    return None
            elif source is Source.COMPARATOR and self.enrichment is not None:
                self.enrichment.submit(key, timestamp)
                return None

        return self._observe(key, source, timestamp)

    def process_content(self, result: ContentResult) -> Optional[Classification]:
        """Handle the contents fetched for a comparator hash."""
        if result.error is not None:
            raise TransportError(f"cannot get contents for hash {result.key}: {result.error}")

        contents = self.variant.parse_lookup(result.data)
        logger.debug(f"got contents for hash {result.key} seen at {result.seen_at.isoformat()}")
        if contents is None:
            return None

        if not self._accepts(result.key, contents):
            return None

        return self._observe(result.key, Source.COMPARATOR, result.seen_at)

    def _accepts(self, key: str, contents: Contents) -> bool:
        verdict = self.content_filter.check(contents)
        if verdict is FilterVerdict.LOW_FEE:
            self.low_fee.add(key)
        return verdict is FilterVerdict.ACCEPT

    def _observe(self, key: str, source: Source, timestamp: datetime) -> Classification:
        classification = classify(
            key, timestamp, self.window, self.lead_seen, self.trail_seen, self.table
        )
        if classification is Classification.LEAD:
            self.lead_seen.add(key)
        elif classification is Classification.CORRELATE:
            self.table.set_if_unset(key, source, timestamp)
        else:
            self.trail_seen.add(key)
        return classification

    @property
    def running(self) -> bool:
        return self._running
