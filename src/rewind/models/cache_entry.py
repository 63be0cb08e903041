"""Response cache entry: one cached stream per request fingerprint."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Integer, String, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from rewind.models.base import Base


class ResponseCacheEntry(Base):
    __tablename__ = "response_cache"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # Lookup Keys
    key_hash: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True
    )  # SHA-256 of cache_key; the canonical JSON itself can be arbitrarily long
    cache_key: Mapped[str] = mapped_column(Text, nullable=False)

    # Cached Data
    response: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False
    )
    chunk_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Ownership (statistics and scoped clearing only, never read access)
    user_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)

    # Lifecycle
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
