"""Background sweep of expired cache entries."""

import asyncio
import contextlib
import logging

from query_router.consts import CACHE_SWEEP_INTERVAL_SECONDS
from query_router.storage.cache.tiered_cache import TieredCache

logger = logging.getLogger(__name__)


class CacheSweeper:
    """Runs TieredCache.sweep() on a fixed interval in an asyncio task.

    Each sweep runs in a worker thread since mirroring to the store does file I/O.
    """

    def __init__(self, cache: TieredCache, interval_seconds: float = CACHE_SWEEP_INTERVAL_SECONDS):
        """Initialize CacheSweeper.

        Args:
            cache: Cache to sweep.
            interval_seconds: Delay between sweeps (default: 60s).
        """
        self.cache = cache
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start sweeping. Must be called from a running event loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run())
        logger.info(f"Cache sweeper started (interval={self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop sweeping and wait for the task to exit."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Cache sweeper stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await asyncio.to_thread(self.cache.sweep)
            except Exception as e:
                logger.warning(f"Cache sweep failed: {e}")
