"""Cache management endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Query, Response, status

from rewind.api.deps import AdminAccess, Store
from rewind.schemas.cache import (
    CacheCleanupResponse,
    CacheClearRequest,
    CacheClearResponse,
    CacheDeleteRequest,
    CacheSizeResponse,
    CacheStatsResponse,
)

router = APIRouter()


@router.get("/stats", response_model=CacheStatsResponse, summary="Cache statistics")
async def cache_stats(
    _: AdminAccess,
    store: Store,
    owner_id: str | None = Query(None, description="Only count entries written for this user"),
) -> CacheStatsResponse:
    stats = await store.get_stats(owner_id)
    return CacheStatsResponse(**stats.to_dict())


@router.get("/size", response_model=CacheSizeResponse, summary="Unexpired entry count")
async def cache_size(
    _: AdminAccess,
    store: Store,
    owner_id: str | None = Query(None),
) -> CacheSizeResponse:
    return CacheSizeResponse(owner_id=owner_id, size=await store.size(owner_id))


@router.post("/clear", response_model=CacheClearResponse, summary="Clear cache")
async def clear_cache(body: CacheClearRequest, _: AdminAccess, store: Store) -> CacheClearResponse:
    cleared = await store.clear(body.owner_id)
    return CacheClearResponse(cleared=cleared)


@router.post("/cleanup", response_model=CacheCleanupResponse, summary="Remove expired entries")
async def cleanup_cache(_: AdminAccess, store: Store) -> CacheCleanupResponse:
    return CacheCleanupResponse(removed=await store.cleanup())


@router.delete(
    "/entries",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete one entry by cache key",
)
async def delete_entry(body: CacheDeleteRequest, _: AdminAccess, store: Store) -> Response:
    await store.delete(body.cache_key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
