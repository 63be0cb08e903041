"""
Stream cache middleware: cache-aside around a streaming model call.

  lookup(key) ──hit──▶ replay stored parts with simulated timing
       │
      miss
       ▼
  do_invoke() ──▶ tee: yield each part to the caller + buffer a copy
                        └─ on normal completion: spawn store.set(key, buffer)

The cache is best-effort: lookup and write failures are logged and the
request proceeds as if no cache existed. Upstream failures propagate
unchanged and nothing is stored for them. A stream the consumer abandons
early (aclose, cancellation, disconnect) is not stored either.

Concurrent identical misses are not coalesced; each one invokes the model.
Cached entries are readable by any owner whose request has the same key;
``owner_id`` only scopes statistics and clearing.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from dataclasses import replace

import structlog

from rewind.common.tasks import TaskSupervisor
from rewind.config import CacheSettings
from rewind.core.cache.classifier import is_creative_request
from rewind.core.cache.keys import build_cache_key, hash_key
from rewind.core.cache.store import DEFAULT_TTL_SECONDS, StreamStore
from rewind.providers.base import DoInvoke, StreamResult
from rewind.schemas.chat import InvocationParams
from rewind.schemas.stream import StreamPart

logger = structlog.stdlib.get_logger()

REPLAY_INITIAL_DELAY_MS = 20
REPLAY_CHUNK_DELAY_MS = 3


class StreamCacheMiddleware:
    """
    Wraps one user's model invocations with the replay cache.

    Usage:
        middleware = StreamCacheMiddleware(store, owner_id="user-1", tasks=tasks)
        result = await middleware.wrap_stream(params, lambda: invoker.stream(params))
        async for part in result.stream:
            ...
    """

    def __init__(
        self,
        store: StreamStore,
        owner_id: str | None = None,
        *,
        tasks: TaskSupervisor | None = None,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        initial_delay_ms: int = REPLAY_INITIAL_DELAY_MS,
        chunk_delay_ms: int = REPLAY_CHUNK_DELAY_MS,
    ) -> None:
        self.store = store
        self.owner_id = owner_id
        self._tasks = tasks or TaskSupervisor()
        self._ttl_seconds = ttl_seconds
        self._initial_delay = initial_delay_ms / 1000
        self._chunk_delay = chunk_delay_ms / 1000

    @classmethod
    def from_settings(
        cls,
        store: StreamStore,
        owner_id: str | None,
        settings: CacheSettings,
        tasks: TaskSupervisor,
    ) -> StreamCacheMiddleware:
        return cls(
            store,
            owner_id,
            tasks=tasks,
            ttl_seconds=settings.default_ttl_seconds,
            initial_delay_ms=settings.replay_initial_delay_ms,
            chunk_delay_ms=settings.replay_chunk_delay_ms,
        )

    async def wrap_stream(self, params: InvocationParams, do_invoke: DoInvoke) -> StreamResult:
        creative = is_creative_request(params.prompt)
        cache_key = build_cache_key(params, creative=creative)
        key_hash = hash_key(cache_key)[:12]

        await logger.adebug(
            "cache.key",
            hash=key_hash,
            key_length=len(cache_key),
            creative=creative,
        )

        cached = await self._lookup(cache_key, key_hash)
        if cached is not None:
            await logger.ainfo(
                "cache.hit",
                hash=key_hash,
                chunks=len(cached),
                owner_id=self.owner_id,
                size=await self._owner_size(),
            )
            return StreamResult(
                stream=self._replay(cached),
                raw_call={"raw_prompt": None, "raw_settings": {}},
                cached=True,
            )

        await logger.ainfo(
            "cache.miss",
            hash=key_hash,
            creative=creative,
            owner_id=self.owner_id,
            size=await self._owner_size(),
        )

        result = await do_invoke()
        return replace(result, stream=self._tee(cache_key, result.stream), cached=False)

    async def _lookup(self, cache_key: str, key_hash: str) -> list[StreamPart] | None:
        try:
            return await self.store.get(cache_key)
        except Exception as e:
            # Lookup failure degrades to a miss
            await logger.awarning(
                "cache.lookup.failed",
                hash=key_hash,
                backend=self.store.backend_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def _owner_size(self) -> int | None:
        """Unexpired entries for this owner, or None when the store cannot say."""
        try:
            return await self.store.size(self.owner_id)
        except Exception as e:
            await logger.adebug(
                "cache.size.failed",
                backend=self.store.backend_name,
                error=str(e),
            )
            return None

    async def _replay(self, parts: list[StreamPart]) -> AsyncIterator[StreamPart]:
        for index, part in enumerate(parts):
            delay = self._initial_delay if index == 0 else self._chunk_delay
            if delay:
                await asyncio.sleep(delay)
            yield part

    async def _tee(
        self, cache_key: str, upstream: AsyncIterator[StreamPart]
    ) -> AsyncIterator[StreamPart]:
        buffer: list[StreamPart] = []
        completed = False
        try:
            async for part in upstream:
                buffer.append(part)
                yield part
            completed = True
        finally:
            if completed:
                self._schedule_write(cache_key, buffer)
            else:
                # Upstream failed or the consumer went away: drop the partial buffer
                buffer.clear()
                aclose = getattr(upstream, "aclose", None)
                if aclose is not None:
                    await aclose()

    def _schedule_write(self, cache_key: str, parts: list[StreamPart]) -> None:
        if not parts:
            return
        self._tasks.spawn(
            self._write(cache_key, parts),
            name=f"cache.write:{hash_key(cache_key)[:12]}",
        )

    async def _write(self, cache_key: str, parts: list[StreamPart]) -> None:
        key_hash = hash_key(cache_key)[:12]
        try:
            await self.store.set(cache_key, parts, self._ttl_seconds, self.owner_id)
        except Exception as e:
            # Cache write failure should never reach the caller
            await logger.awarning(
                "cache.store.failed",
                hash=key_hash,
                backend=self.store.backend_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            return

        await logger.ainfo(
            "cache.stored",
            hash=key_hash,
            chunks=len(parts),
            ttl=self._ttl_seconds,
            owner_id=self.owner_id,
        )
