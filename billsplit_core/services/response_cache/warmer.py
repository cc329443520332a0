"""Bounded background queue for cache warm-up."""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from billsplit_core.core.logging import get_logger
from billsplit_core.models.cache import RequestDescriptor, WarmupResult
from billsplit_core.services.response_cache.response_cache import ResponseCacheService

logger = get_logger(__name__)

Loader = Callable[[RequestDescriptor], Awaitable[Any]]

COMMON_QUERIES: Dict[str, List[str]] = {
    "SP": [
        "Dividir conta do rodízio",
        "Happy hour com a galera",
        "Uber compartilhado",
    ],
    "RJ": [
        "Dividir conta do bar",
        "Praia com amigos",
        "Festa de aniversário",
    ],
    "NE": [
        "Churrasco na praia",
        "Forró com amigos",
        "Jantar em família",
    ],
    "Sul": [
        "Churrasco tradicional",
        "Happy hour trabalho",
        "Jantar com colegas",
    ],
}


def common_queries_for_region(region: str) -> List[str]:
    """Frequent requests for a region, São Paulo's list when unknown."""
    return COMMON_QUERIES.get(region, COMMON_QUERIES["SP"])


class CacheWarmer:
    """Warms the response cache with a fixed number of workers.

    Jobs are queued with ``submit`` and each returns a future that resolves
    to a ``WarmupResult``; failures are reported there and counted, never
    dropped silently. When the queue is full new jobs are rejected instead
    of piling up.
    """

    def __init__(
        self,
        cache: ResponseCacheService,
        loader: Loader,
        concurrency: int = 4,
        queue_size: int = 100,
        ttl: int = 1800
    ):
        self.cache = cache
        self.loader = loader
        self.concurrency = max(1, concurrency)
        self.ttl = ttl
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=queue_size)
        self._workers: List[asyncio.Task] = []
        self._in_flight: Set[str] = set()
        self.completed = 0
        self.failed = 0
        self.skipped = 0
        self.rejected = 0

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Spawn the worker tasks (idempotent)."""
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"cache-warmer-{i}")
            for i in range(self.concurrency)
        ]
        logger.info(f"Cache warmer started with {self.concurrency} workers")

    async def stop(self) -> None:
        """Cancel workers and any job still waiting in the queue."""
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

        while not self._queue.empty():
            key, _, future = self._queue.get_nowait()
            self._in_flight.discard(key)
            if not future.done():
                future.cancel()
            self._queue.task_done()
        logger.info("Cache warmer stopped")

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    def submit(self, descriptor: RequestDescriptor) -> "asyncio.Future[WarmupResult]":
        """Queue a warm-up job.

        A job whose key is already queued or running settles at once as skipped.
        """
        future = asyncio.get_running_loop().create_future()
        key = self.cache.key_generator.response(descriptor)

        if key in self._in_flight:
            self.skipped += 1
            logger.debug(f"Warm-up for key {key} already in flight")
            future.set_result(WarmupResult(key=key, warmed=False, skipped=True))
            return future

        try:
            self._queue.put_nowait((key, descriptor, future))
        except asyncio.QueueFull:
            self.rejected += 1
            logger.warning("Cache warmer queue full, dropping warm-up job")
            future.set_result(WarmupResult(key=key, warmed=False, error="queue full"))
            return future

        self._in_flight.add(key)
        return future

    def warm_region(self, region: str, model: str) -> List["asyncio.Future[WarmupResult]"]:
        """Queue the common requests of ``region`` for ``model``."""
        return [
            self.submit(RequestDescriptor(region=region, model=model, message=query))
            for query in common_queries_for_region(region)
        ]

    async def _worker(self, index: int) -> None:
        while True:
            key, descriptor, future = await self._queue.get()
            try:
                result = await self._warm(key, descriptor)
                if not future.done():
                    future.set_result(result)
            except Exception as e:
                self.failed += 1
                logger.error(f"Cache warmer {index} job crashed: {e}", exc_info=True)
                if not future.done():
                    future.set_exception(e)
            finally:
                self._in_flight.discard(key)
                self._queue.task_done()

    async def _warm(self, key: str, descriptor: RequestDescriptor) -> WarmupResult:
        if await self.cache.exists(key):
            self.skipped += 1
            return WarmupResult(key=key, warmed=False, skipped=True)

        try:
            value = await self.loader(descriptor)
        except Exception as e:
            self.failed += 1
            logger.error(f"Cache warm-up failed for key {key}: {e}")
            return WarmupResult(key=key, warmed=False, error=str(e))

        entry = await self.cache.set(key, value, self.ttl)
        if entry is None:
            self.failed += 1
            return WarmupResult(key=key, warmed=False, error="backend unavailable")

        self.completed += 1
        return WarmupResult(key=key, warmed=True)

    def stats(self) -> Dict[str, Optional[int]]:
        return {
            "queued": self._queue.qsize(),
            "completed": self.completed,
            "failed": self.failed,
            "skipped": self.skipped,
            "rejected": self.rejected,
        }
