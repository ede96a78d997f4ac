"""Content Enrichment pool - resolves hashes to contents for filtering."""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Protocol, Tuple

from .errors import TransportError
from .models import ContentResult

logger = logging.getLogger(__name__)


class ContentFetcher(Protocol):
    """Protocol for a single-connection detail lookup client."""
    async def fetch_by_hash(self, key: str) -> Any: ...
    async def close(self) -> None: ...


FetcherFactory = Callable[[], Awaitable[ContentFetcher]]


class ContentEnrichmentPool:
    """
    Fixed-size pool of workers performing one lookup per hash.

    Requests go through a bounded queue. submit() never blocks: when the
    queue is full the request is dropped and counted, the caller (the
    engine loop) must not stall behind slow RPC calls.
    """

    def __init__(
        self,
        fetcher_factory: FetcherFactory,
        results: "asyncio.Queue[ContentResult]",
        workers: int = 4,
        queue_size: int = 8192,
    ):
        """
        Args:
            fetcher_factory: Coroutine function opening one fetcher connection
            results: Queue drained by the engine (content-result channel)
            workers: Number of concurrent lookups
            queue_size: Capacity of the pending hash queue
        """
        self.fetcher_factory = fetcher_factory
        self.results = results
        self.workers = workers
        self.requests: "asyncio.Queue[Tuple[str, datetime]]" = asyncio.Queue(maxsize=queue_size)

        self._fetchers: List[ContentFetcher] = []
        self._tasks: List[asyncio.Task] = []
        self._dropped = 0

    async def start(self) -> int:
        """
        Open one fetcher per worker and start the workers.

        Returns:
            Number of workers that connected
        """
        for index in range(self.workers):
            try:
                fetcher = await self.fetcher_factory()
            except TransportError as e:
                logger.error(f"Content fetcher {index} failed to connect: {e}")
                continue
            self._fetchers.append(fetcher)
            self._tasks.append(
                asyncio.create_task(self._work(index, fetcher), name=f"enrichment-{index}")
            )

        if not self._tasks:
            logger.error("No content fetcher connected, enriched arrivals will not be correlated")
        else:
            logger.info(f"Content enrichment pool started with {len(self._tasks)} workers")
        return len(self._tasks)

    def submit(self, key: str, seen_at: datetime) -> bool:
        """Queue a lookup without blocking. Returns False if it was dropped."""
        try:
            self.requests.put_nowait((key, seen_at))
            return True
        except asyncio.QueueFull:
            self._dropped += 1
            logger.warning(f"Enrichment queue full, dropping lookup for {key}")
            return False

    def drain(self) -> int:
        """Discard pending lookups. Returns how many were discarded."""
        count = 0
        while True:
            try:
                self.requests.get_nowait()
            except asyncio.QueueEmpty:
                return count
            count += 1

    async def _work(self, index: int, fetcher: ContentFetcher) -> None:
        while True:
            key, seen_at = await self.requests.get()
            try:
                data = await fetcher.fetch_by_hash(key)
                result = ContentResult(key=key, data=data, seen_at=seen_at)
            except TransportError as e:
                logger.debug(f"Content fetcher {index} failed for {key}: {e}")
                result = ContentResult(key=key, data=None, seen_at=seen_at, error=e)
            await self.results.put(result)

    async def stop(self) -> None:
        """Cancel the workers, wait for them and close their connections."""
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        for fetcher in self._fetchers:
            try:
                await fetcher.close()
            except TransportError as e:
                logger.error(f"Cannot close content fetcher: {e}")
        self._fetchers = []

    @property
    def dropped(self) -> int:
        return self._dropped

    @property
    def running(self) -> int:
        return sum(1 for task in self._tasks if not task.done())
