"""
Redis-backed stream store.

Layout (``<p>`` = configured key prefix):
  <p>cache:stream:entry:<sha256(key)>   JSON envelope, SETEX with the entry TTL
  <p>cache:stream:owner:<owner_id>      SET of entry hashes written for that owner

Redis expires entries on its own, so expired entries never linger here:
``get_stats()`` always reports ``expired == 0`` and ``cleanup()`` prunes
owner-index members whose entry has gone, returning how many it pruned.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from typing import Any

import redis.asyncio as aioredis
import structlog
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from rewind.common.errors import CacheBackendError, CacheDecodeError
from rewind.config import RedisSettings
from rewind.core.cache.keys import hash_key
from rewind.core.cache.store import DEFAULT_TTL_SECONDS, CacheStats, StreamStore
from rewind.schemas.stream import StreamPart, dump_parts, load_parts

logger = structlog.stdlib.get_logger()


class RedisStreamStore(StreamStore):
    """Expects a client created with ``decode_responses=True``."""

    backend_name = "redis"

    def __init__(self, redis_client: aioredis.Redis, key_prefix: str = "rewind:") -> None:
        self._redis = redis_client
        self._prefix = f"{key_prefix}cache:stream:"

    @classmethod
    def from_settings(cls, settings: RedisSettings) -> RedisStreamStore:
        client = aioredis.from_url(settings.url, decode_responses=True)
        return cls(client, key_prefix=settings.key_prefix)

    def _entry_key(self, digest: str) -> str:
        return f"{self._prefix}entry:{digest}"

    def _owner_key(self, owner_id: str) -> str:
        return f"{self._prefix}owner:{owner_id}"

    @staticmethod
    def _backend_error(e: Exception) -> CacheBackendError:
        return CacheBackendError("Cache Redis unavailable", details={"reason": str(e)})

    @staticmethod
    def _decode(raw: str | bytes) -> dict[str, Any]:
        try:
            envelope = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CacheDecodeError("Malformed cache record") from e
        if not isinstance(envelope, dict) or "response" not in envelope:
            raise CacheDecodeError("Malformed cache record")
        return envelope

    async def get(self, key: str) -> list[StreamPart] | None:
        digest = hash_key(key)
        try:
            raw = await self._redis.get(self._entry_key(digest))
        except RedisError as e:
            await logger.awarning("cache.redis.unavailable", op="get")
            raise self._backend_error(e) from e

        if raw is None:
            return None

        envelope = self._decode(raw)
        if envelope.get("cache_key") != key:
            return None

        try:
            parts = load_parts(envelope["response"])
        except PydanticValidationError as e:
            raise CacheDecodeError("Malformed cache record", details={"key_hash": digest[:12]}) from e

        await logger.adebug("cache.redis.hit", hash=digest[:12])
        return parts

    async def set(
        self,
        key: str,
        parts: list[StreamPart],
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        owner_id: str | None = None,
    ) -> None:
        digest = hash_key(key)
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=ttl_seconds)
        envelope = {
            "cache_key": key,
            "response": dump_parts(parts),
            "expires_at": expires_at.isoformat(),
            "user_id": owner_id,
        }

        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.setex(self._entry_key(digest), ttl_seconds, json.dumps(envelope))
                if owner_id is not None:
                    pipe.sadd(self._owner_key(owner_id), digest)
                await pipe.execute()
        except RedisError as e:
            await logger.awarning("cache.redis.unavailable", op="set")
            raise self._backend_error(e) from e

        await logger.adebug("cache.redis.stored", hash=digest[:12], ttl=ttl_seconds)

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(self._entry_key(hash_key(key)))
        except RedisError as e:
            raise self._backend_error(e) from e

    async def _owned_digests(self, owner_id: str) -> tuple[list[str], list[str]]:
        """Split an owner's index into (live and still owned, stale) digests."""
        members = sorted(await self._redis.smembers(self._owner_key(owner_id)))
        if not members:
            return [], []

        raws = await self._redis.mget([self._entry_key(d) for d in members])
        live: list[str] = []
        stale: list[str] = []
        for digest, raw in zip(members, raws):
            if raw is None:
                stale.append(digest)
                continue
            try:
                owner = self._decode(raw).get("user_id")
            except CacheDecodeError:
                owner = None
            (live if owner == owner_id else stale).append(digest)
        return live, stale

    async def cleanup(self) -> int:
        pruned = 0
        try:
            async for owner_key in self._redis.scan_iter(match=f"{self._prefix}owner:*", count=100):
                owner_id = owner_key.removeprefix(f"{self._prefix}owner:")
                _, stale = await self._owned_digests(owner_id)
                if stale:
                    await self._redis.srem(owner_key, *stale)
                    pruned += len(stale)
        except RedisError as e:
            raise self._backend_error(e) from e
        return pruned

    async def clear(self, owner_id: str | None = None) -> int:
        try:
            if owner_id is None:
                count = 0
                async for key in self._redis.scan_iter(match=f"{self._prefix}*", count=100):
                    if key.startswith(f"{self._prefix}entry:"):
                        count += 1
                    await self._redis.delete(key)
                return count

            live, _ = await self._owned_digests(owner_id)
            async with self._redis.pipeline(transaction=True) as pipe:
                if live:
                    pipe.delete(*(self._entry_key(d) for d in live))
                pipe.delete(self._owner_key(owner_id))
                await pipe.execute()
            return len(live)
        except RedisError as e:
            raise self._backend_error(e) from e

    async def size(self, owner_id: str | None = None) -> int:
        try:
            if owner_id is not None:
                live, _ = await self._owned_digests(owner_id)
                return len(live)

            count = 0
            async for _ in self._redis.scan_iter(match=f"{self._prefix}entry:*", count=100):
                count += 1
            return count
        except RedisError as e:
            raise self._backend_error(e) from e

    async def get_stats(self, owner_id: str | None = None) -> CacheStats:
        active = await self.size(owner_id)
        return CacheStats(total=active, active=active, expired=0)

    async def ping(self) -> bool:
        try:
            return bool(await self._redis.ping())
        except RedisError as e:
            raise self._backend_error(e) from e

    async def close(self) -> None:
        await self._redis.aclose()
