"""Admin API router for management endpoints."""

from fastapi import APIRouter

from rewind.api.admin.cache import router as cache_router
from rewind.api.admin.health import router as health_router

admin_router = APIRouter(prefix="/admin/v1", tags=["Admin"])

admin_router.include_router(health_router, prefix="/health")
admin_router.include_router(cache_router, prefix="/cache")
