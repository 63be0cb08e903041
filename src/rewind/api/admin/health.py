"""Health check endpoints for liveness/readiness probes."""

from __future__ import annotations

import structlog
from fastapi import APIRouter
from fastapi.responses import ORJSONResponse

from rewind import __version__
from rewind.api.deps import Store
from rewind.schemas.health import LivenessResponse, ReadinessResponse

logger = structlog.stdlib.get_logger()

router = APIRouter()


@router.get(
    "/live",
    response_model=LivenessResponse,
    summary="Liveness probe",
)
async def liveness() -> LivenessResponse:
    return LivenessResponse(version=__version__)


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
)
async def readiness(store: Store) -> ORJSONResponse:
    cache_status = "disconnected"
    try:
        await store.ping()
        cache_status = "connected"
    except Exception as e:
        await logger.awarning("health.cache.unreachable", error=str(e))

    overall = "ok" if cache_status == "connected" else "degraded"

    return ORJSONResponse(
        status_code=200 if overall == "ok" else 503,
        content=ReadinessResponse(
            status=overall,
            cache_backend=store.backend_name,
            cache=cache_status,
        ).model_dump(),
    )
