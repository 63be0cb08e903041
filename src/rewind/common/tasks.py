"""
Supervisor for detached background coroutines.

Used for work the request path must not wait on, such as writing a
finished stream to the cache. Callers ``spawn()`` and move on: the
supervisor keeps a strong reference until the task finishes, logs any
failure, and never re-raises it.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine

import structlog

logger = structlog.stdlib.get_logger()


class TaskSupervisor:
    """Owns fire-and-forget tasks for the lifetime of the application."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        """Schedule ``coro`` without awaiting it. Failures are logged only."""
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.debug("tasks.cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "tasks.failed",
                task=task.get_name(),
                error=str(exc),
                error_type=type(exc).__name__,
            )

    async def drain(self, timeout: float | None = None) -> None:
        """Wait for pending tasks; cancel whatever is still running after ``timeout``."""
        if not self._tasks:
            return

        pending = list(self._tasks)
        done, still_running = await asyncio.wait(pending, timeout=timeout)

        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
            await logger.awarning("tasks.drain.cancelled", count=len(still_running))

        await logger.adebug("tasks.drained", completed=len(done))
