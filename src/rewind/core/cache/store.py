"""Abstract base class for stream stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass

from rewind.schemas.stream import StreamPart

DEFAULT_TTL_SECONDS = 3600


@dataclass(frozen=True)
class CacheStats:
    total: int
    active: int
    expired: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class StreamStore(ABC):
    """
    Keyed storage for cached stream part sequences.

    Subclasses must honour:
      - one entry per key; ``set`` overwrites (upsert)
      - ``get`` never returns an entry whose expiry has passed
      - ``get`` returns ``None`` for missing keys and raises
        ``CacheBackendError`` only when the backend itself fails
      - ``delete`` of a missing key is not an error
    """

    backend_name: str

    @abstractmethod
    async def get(self, key: str) -> list[StreamPart] | None:
        """Return the stored parts for ``key`` if present and unexpired."""
        ...

    @abstractmethod
    async def set(
        self,
        key: str,
        parts: list[StreamPart],
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        owner_id: str | None = None,
    ) -> None:
        """Upsert ``key``; expiry becomes now + ``ttl_seconds``."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def cleanup(self) -> int:
        """Remove expired entries. Returns the number removed."""
        ...

    @abstractmethod
    async def clear(self, owner_id: str | None = None) -> int:
        """Delete all entries, or only those written for ``owner_id``."""
        ...

    @abstractmethod
    async def size(self, owner_id: str | None = None) -> int:
        """Count unexpired entries."""
        ...

    @abstractmethod
    async def get_stats(self, owner_id: str | None = None) -> CacheStats:
        ...

    async def ping(self) -> bool:
        """Cheap backend reachability check for readiness probes."""
        await self.size()
        return True

    async def close(self) -> None:
        return None
