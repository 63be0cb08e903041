"""Stream store selection from settings."""

from __future__ import annotations

import redis.asyncio as aioredis

from rewind.config import CacheBackend, Settings
from rewind.core.cache.database import DatabaseStreamStore
from rewind.core.cache.memory import InMemoryStreamStore
from rewind.core.cache.redis_store import RedisStreamStore
from rewind.core.cache.store import StreamStore
from rewind.db.session import Database


def create_stream_store(
    settings: Settings,
    *,
    database: Database | None = None,
    redis_client: aioredis.Redis | None = None,
) -> StreamStore:
    """
    Build the store named by ``settings.cache.backend``.

    Backends:
    - ``database`` (default): needs ``database``
    - ``redis``: uses ``redis_client`` when given, else a client from ``settings.redis.url``
    - ``memory``: process-local, lost on restart
    """
    backend = settings.cache.backend

    if backend == CacheBackend.DATABASE:
        if database is None:
            raise ValueError("The database cache backend requires a Database instance")
        return DatabaseStreamStore(database)

    if backend == CacheBackend.REDIS:
        if redis_client is not None:
            return RedisStreamStore(redis_client, key_prefix=settings.redis.key_prefix)
        return RedisStreamStore.from_settings(settings.redis)

    if backend == CacheBackend.MEMORY:
        return InMemoryStreamStore()

    supported = ", ".join(b.value for b in CacheBackend)
    raise ValueError(f"Unsupported cache backend: '{backend}'. Supported: {supported}")
