"""In-process stream store, for tests and single-worker deployments."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from rewind.core.cache.store import DEFAULT_TTL_SECONDS, CacheStats, StreamStore
from rewind.schemas.stream import StreamPart


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _Entry:
    parts: tuple[StreamPart, ...]
    expires_at: datetime
    owner_id: str | None


class InMemoryStreamStore(StreamStore):
    backend_name = "memory"

    def __init__(self, clock: Callable[[], datetime] = _utcnow) -> None:
        self._entries: dict[str, _Entry] = {}
        self._clock = clock

    def _is_expired(self, entry: _Entry) -> bool:
        return entry.expires_at <= self._clock()

    async def get(self, key: str) -> list[StreamPart] | None:
        entry = self._entries.get(key)
        if entry is None or self._is_expired(entry):
            return None
        return list(entry.parts)

    async def set(
        self,
        key: str,
        parts: list[StreamPart],
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        owner_id: str | None = None,
    ) -> None:
        self._entries[key] = _Entry(
            parts=tuple(parts),
            expires_at=self._clock() + timedelta(seconds=ttl_seconds),
            owner_id=owner_id,
        )

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def cleanup(self) -> int:
        expired = [k for k, e in self._entries.items() if self._is_expired(e)]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def clear(self, owner_id: str | None = None) -> int:
        if owner_id is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        owned = [k for k, e in self._entries.items() if e.owner_id == owner_id]
        for key in owned:
            del self._entries[key]
        return len(owned)

    def _scoped(self, owner_id: str | None) -> list[_Entry]:
        entries = list(self._entries.values())
        if owner_id is not None:
            entries = [e for e in entries if e.owner_id == owner_id]
        return entries

    async def size(self, owner_id: str | None = None) -> int:
        return sum(1 for e in self._scoped(owner_id) if not self._is_expired(e))

    async def get_stats(self, owner_id: str | None = None) -> CacheStats:
        entries = self._scoped(owner_id)
        expired = sum(1 for e in entries if self._is_expired(e))
        return CacheStats(total=len(entries), active=len(entries) - expired, expired=expired)
