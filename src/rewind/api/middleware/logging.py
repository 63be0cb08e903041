"""Request/response logging middleware."""

from __future__ import annotations

import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = structlog.stdlib.get_logger()

_QUIET_PATHS = frozenset({"/admin/v1/health/live", "/admin/v1/health/ready"})


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()

        response = await call_next(request)

        # For streams this is time to headers, not time to the last event
        duration_ms = int((time.perf_counter() - start) * 1000)
        response.headers["x-rewind-latency-ms"] = str(duration_ms)

        if request.url.path in _QUIET_PATHS:
            return response

        await logger.ainfo(
            "http.request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            cache=response.headers.get("x-rewind-cache"),
            duration_ms=duration_ms,
            client=request.client.host if request.client else None,
        )
        return response
