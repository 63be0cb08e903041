"""Periodic removal of expired cache entries."""

from __future__ import annotations

import asyncio

import structlog

from rewind.core.cache.store import StreamStore

logger = structlog.stdlib.get_logger()

DEFAULT_CLEANUP_INTERVAL_SECONDS = 3600


class CleanupScheduler:
    """Runs ``store.cleanup()`` every ``interval_seconds`` in a background task."""

    def __init__(
        self,
        store: StreamStore,
        interval_seconds: float = DEFAULT_CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        self.store = store
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name="cache.cleanup"
        )
        logger.info(
            "cache.cleanup.started",
            interval_seconds=self.interval_seconds,
            backend=self.store.backend_name,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        await logger.ainfo("cache.cleanup.stopped")

    async def run_once(self) -> int:
        removed = await self.store.cleanup()
        if removed:
            await logger.ainfo("cache.cleanup.completed", removed=removed)
        return removed

    async def _loop(self) -> None:
        # First sweep happens one interval after start
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception as e:
                await logger.aerror("cache.cleanup.failed", error=str(e))
