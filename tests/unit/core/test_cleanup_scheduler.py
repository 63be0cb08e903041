"""Tests for periodic expired-entry cleanup."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from rewind.core.cache.maintenance import CleanupScheduler
from rewind.core.cache.memory import InMemoryStreamStore
from tests.factories import FakeClock, text_parts


@pytest.mark.unit
class TestCleanupScheduler:
    async def test_run_once_removes_expired(self) -> None:
        clock = FakeClock()
        store = InMemoryStreamStore(clock=clock)
        await store.set("k", text_parts("a"), ttl_seconds=1)
        clock.advance(2)

        assert await CleanupScheduler(store).run_once() == 1
        assert (await store.get_stats()).total == 0

    async def test_loop_runs_every_interval(self) -> None:
        store = AsyncMock(spec=InMemoryStreamStore)
        store.backend_name = "mock"
        store.cleanup.return_value = 0
        scheduler = CleanupScheduler(store, interval_seconds=0.01)

        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert not scheduler.running
        assert store.cleanup.await_count >= 2

    async def test_loop_survives_failures(self) -> None:
        store = AsyncMock(spec=InMemoryStreamStore)
        store.backend_name = "mock"
        store.cleanup.side_effect = RuntimeError("db down")
        scheduler = CleanupScheduler(store, interval_seconds=0.01)

        scheduler.start()
        await asyncio.sleep(0.05)
        assert scheduler.running
        await scheduler.stop()
        assert store.cleanup.await_count >= 2

    async def test_start_is_idempotent(self) -> None:
        scheduler = CleanupScheduler(InMemoryStreamStore(), interval_seconds=60)
        scheduler.start()
        task = scheduler._task
        scheduler.start()
        assert scheduler._task is task
        await scheduler.stop()

    async def test_stop_without_start(self) -> None:
        await CleanupScheduler(InMemoryStreamStore()).stop()
