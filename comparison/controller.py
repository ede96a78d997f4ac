"""Interval Controller - drives lead / active / trail cycles and reporting."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Tuple

from .engine import FeedComparisonEngine
from .enrichment import ContentEnrichmentPool
from .errors import FeedCompareError
from .models import IntervalStats, Source
from .stats import format_timestamp
from .window import next_window

logger = logging.getLogger(__name__)

SEPARATOR = "-----------------------------------------------------"


class Reader(Protocol):
    """Protocol for a feed reader task."""
    async def connect(self) -> None: ...
    async def run(self) -> None: ...
    async def close(self) -> None: ...


class IntervalController:
    """
    Runs N measurement intervals against a running engine.

    Per interval: wait until the window closes (lead + active period),
    clear the trail set, wait the trail period, then take the report and
    reset the engine in one command so no arrival slips in between.
    """

    def __init__(
        self,
        engine: FeedComparisonEngine,
        readers: List[Reader],
        enrichment: Optional[ContentEnrichmentPool] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        output: Callable[[str], None] = print,
    ):
        """
        Args:
            engine: The comparison engine (not yet running)
            readers: Reference and comparator feed readers
            enrichment: Content enrichment pool, when contents are filtered
            sleep: Timer used between phases
            output: Receives each rendered report
        """
        self.engine = engine
        self.readers = readers
        self.enrichment = enrichment
        self.sleep = sleep
        self.output = output

        self._tasks: List[asyncio.Task] = []
        self._engine_task: Optional[asyncio.Task] = None

    async def run(self) -> List[IntervalStats]:
        """
        Connect the feeds, run all intervals and shut everything down.

        Raises:
            TransportError: if a primary feed cannot be connected
        """
        await self._connect_readers()

        config = self.engine.config
        results: List[IntervalStats] = []
        try:
            await self._start()

            for index in range(1, config.num_intervals + 1):
                close_at = await self._call(self.engine.submit(lambda: self.engine.window.close_at))
                await self._sleep_until(close_at)
                await self._call(self.engine.clear_trail())
                await self.sleep(config.trail_time)

                text, stats = await self._call(self.engine.submit(
                    lambda index=index: self._report_and_reset(index)
                ))
                self.output(text)
                results.append(stats)

                if index == config.num_intervals:
                    self.output(
                        f"{index} of {config.num_intervals} intervals complete. Exiting.\n"
                    )
        finally:
            await self.shutdown()

        return results

    async def _connect_readers(self) -> None:
        connected = []
        try:
            for reader in self.readers:
                await reader.connect()
                connected.append(reader)
        except BaseException:
            for reader in connected:
                await reader.close()
            raise

    async def _start(self) -> None:
        if self.enrichment is not None:
            self.engine.attach_enrichment(self.enrichment)
            await self.enrichment.start()

        # The lead period starts once the feeds are up.
        self.engine.window = next_window(
            self.engine.clock(), self.engine.config.lead_time, self.engine.config.interval
        )
        self._engine_task = asyncio.create_task(self.engine.run(), name="engine")
        self._tasks.append(self._engine_task)
        for reader in self.readers:
            self._tasks.append(asyncio.create_task(reader.run(), name=f"reader-{len(self._tasks)}"))

    async def _call(self, request: Awaitable[Any]) -> Any:
        """
        Await an engine command, giving up if the engine task ends first.

        Raises:
            FeedCompareError: if the engine stopped without failing
        """
        pending = asyncio.ensure_future(request)
        await asyncio.wait({pending, self._engine_task}, return_when=asyncio.FIRST_COMPLETED)
        if pending.done():
            return pending.result()

        pending.cancel()
        await asyncio.gather(pending, return_exceptions=True)
        # Re-raises the engine's own failure, if any.
        self._engine_task.result()
        raise FeedCompareError("comparison engine stopped")

    async def _sleep_until(self, deadline: datetime) -> None:
        delay = (deadline - self.engine.clock()).total_seconds()
        if delay > 0:
            await self.sleep(delay)

    def _report_and_reset(self, index: int) -> Tuple[str, IntervalStats]:
        config = self.engine.config
        ended_at = self.engine.clock()
        stats = self.engine.snapshot_and_reset()

        header = (
            f"{SEPARATOR}\n"
            f"Interval ({index}/{config.num_intervals}): {config.interval:g} seconds. \n"
            f"End time: {format_timestamp(ended_at)} \n"
        )
        if self.engine.variant.shows_min_gas_price:
            header += f"Minimum gas price: {config.min_gas_price_gwei or 0.0:f} \n"
        return header + self.engine.variant.render(stats, config.verbose) + "\n", stats

    async def shutdown(self) -> None:
        """Cancel readers, workers and the engine, then wait for all of them."""
        self.engine.stop()
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        for reader in self.readers:
            await reader.close()

        if self.enrichment is not None:
            await self.enrichment.stop()
        counts = self.engine.message_counts
        logger.info(
            f"Completed {self.engine.intervals_completed} intervals "
            f"({counts[Source.REFERENCE]} reference, {counts[Source.COMPARATOR]} comparator messages)"
        )
