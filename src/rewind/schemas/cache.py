"""Cache management schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class CacheStatsResponse(BaseModel):
    total: int
    active: int
    expired: int


class CacheSizeResponse(BaseModel):
    owner_id: str | None = None
    size: int


class CacheClearRequest(BaseModel):
    owner_id: str | None = Field(None, description="Clear only entries written for this user")


class CacheClearResponse(BaseModel):
    cleared: int


class CacheCleanupResponse(BaseModel):
    removed: int


class CacheDeleteRequest(BaseModel):
    cache_key: str = Field(..., min_length=1)
