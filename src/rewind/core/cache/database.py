"""
Database-backed stream store (SQLAlchemy async).

One row per cache key in ``response_cache``. Rows are looked up by the
SHA-256 of the key; expired rows stay until ``cleanup()`` removes them but
are never returned by ``get()``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rewind.common.errors import CacheBackendError, CacheDecodeError
from rewind.core.cache.keys import hash_key
from rewind.core.cache.store import DEFAULT_TTL_SECONDS, CacheStats, StreamStore
from rewind.db.session import Database
from rewind.models.cache_entry import ResponseCacheEntry
from rewind.schemas.stream import StreamPart, dump_parts, load_parts

logger = structlog.stdlib.get_logger()

_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DatabaseStreamStore(StreamStore):
    backend_name = "database"

    def __init__(self, database: Database, clock: Callable[[], datetime] = _utcnow) -> None:
        self._db = database
        self._clock = clock

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._db.session() as session:
                yield session
        except (SQLAlchemyError, OSError) as e:
            raise CacheBackendError(
                "Cache database unavailable", details={"reason": str(e)}
            ) from e

    async def get(self, key: str) -> list[StreamPart] | None:
        async with self._session() as session:
            result = await session.execute(
                select(ResponseCacheEntry.cache_key, ResponseCacheEntry.response).where(
                    ResponseCacheEntry.key_hash == hash_key(key),
                    ResponseCacheEntry.expires_at > self._clock(),
                )
            )
            row = result.first()

        if row is None or row.cache_key != key:
            return None

        try:
            return load_parts(row.response)
        except PydanticValidationError as e:
            raise CacheDecodeError(
                "Malformed cache record", details={"key_hash": hash_key(key)[:12]}
            ) from e

    async def set(
        self,
        key: str,
        parts: list[StreamPart],
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        owner_id: str | None = None,
    ) -> None:
        values: dict[str, Any] = {
            "key_hash": hash_key(key),
            "cache_key": key,
            "response": dump_parts(parts),
            "chunk_count": len(parts),
            "user_id": owner_id,
            "expires_at": self._clock() + timedelta(seconds=ttl_seconds),
        }

        async with self._session() as session:
            insert_fn = _UPSERT_DIALECTS.get(self._db.engine.dialect.name)

            if insert_fn is not None:
                stmt = insert_fn(ResponseCacheEntry).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ResponseCacheEntry.key_hash],
                    set_={
                        "cache_key": stmt.excluded.cache_key,
                        "response": stmt.excluded.response,
                        "chunk_count": stmt.excluded.chunk_count,
                        "user_id": stmt.excluded.user_id,
                        "expires_at": stmt.excluded.expires_at,
                        "updated_at": func.now(),
                    },
                )
                await session.execute(stmt)
            else:
                # Generic path: read-modify-write inside the session transaction
                result = await session.execute(
                    select(ResponseCacheEntry).where(
                        ResponseCacheEntry.key_hash == values["key_hash"]
                    )
                )
                entry = result.scalar_one_or_none()
                if entry is None:
                    session.add(ResponseCacheEntry(**values))
                else:
                    for field, value in values.items():
                        setattr(entry, field, value)

        await logger.adebug(
            "cache.database.stored",
            hash=values["key_hash"][:12],
            chunks=len(parts),
            ttl=ttl_seconds,
        )

    async def delete(self, key: str) -> None:
        async with self._session() as session:
            await session.execute(
                delete(ResponseCacheEntry).where(ResponseCacheEntry.key_hash == hash_key(key))
            )

    async def cleanup(self) -> int:
        """Remove expired cache entries"""
        async with self._session() as session:
            result = await session.execute(
                delete(ResponseCacheEntry).where(ResponseCacheEntry.expires_at <= self._clock())
            )
            return result.rowcount or 0

    async def clear(self, owner_id: str | None = None) -> int:
        """Clear cache entries, optionally filtered by owner"""
        stmt = delete(ResponseCacheEntry)
        if owner_id is not None:
            stmt = stmt.where(ResponseCacheEntry.user_id == owner_id)

        async with self._session() as session:
            result = await session.execute(stmt)
            return result.rowcount or 0

    async def size(self, owner_id: str | None = None) -> int:
        stmt = select(func.count(ResponseCacheEntry.id)).where(
            ResponseCacheEntry.expires_at > self._clock()
        )
        if owner_id is not None:
            stmt = stmt.where(ResponseCacheEntry.user_id == owner_id)

        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalar_one()

    async def get_stats(self, owner_id: str | None = None) -> CacheStats:
        """Return cache statistics"""
        total_stmt = select(func.count(ResponseCacheEntry.id))
        expired_stmt = select(func.count(ResponseCacheEntry.id)).where(
            ResponseCacheEntry.expires_at <= self._clock()
        )
        if owner_id is not None:
            total_stmt = total_stmt.where(ResponseCacheEntry.user_id == owner_id)
            expired_stmt = expired_stmt.where(ResponseCacheEntry.user_id == owner_id)

        async with self._session() as session:
            total = (await session.execute(total_stmt)).scalar_one()
            expired = (await session.execute(expired_stmt)).scalar_one()

        return CacheStats(total=total, active=total - expired, expired=expired)
