"""
Unified error handling.

Every Rewind error renders as ``{"error": {"message", "type", "code"}}``.
Cache-layer errors (``CacheError`` and subclasses) are raised by stores and
contained by the stream cache middleware; they only reach HTTP clients
through the admin endpoints.
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

logger = structlog.stdlib.get_logger()


class RewindError(Exception):
    """Base exception for all Rewind errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        return {
            "error": {
                "message": self.message,
                "type": self.error_type,
                "code": self.status_code,
                **self.details,
            }
        }


class AuthenticationError(RewindError):
    status_code = 401
    error_type = "authentication_error"


class AuthorizationError(RewindError):
    status_code = 403
    error_type = "authorization_error"


class UpstreamError(RewindError):
    status_code = 502
    error_type = "upstream_error"


class InvokerUnavailableError(RewindError):
    status_code = 503
    error_type = "invoker_unavailable"


class CacheError(RewindError):
    status_code = 500
    error_type = "cache_error"


class CacheBackendError(CacheError):
    """The store's backend (database, Redis) could not be reached."""

    status_code = 503
    error_type = "cache_backend_unavailable"


class CacheDecodeError(CacheError):
    """A stored record could not be decoded back into stream parts."""

    error_type = "cache_decode_error"


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(RewindError)
    async def rewind_error_handler(request: Request, exc: RewindError) -> ORJSONResponse:
        await logger.awarning(
            "rewind.error",
            error_type=exc.error_type,
            message=exc.message,
            status_code=exc.status_code,
            path=request.url.path,
        )
        return ORJSONResponse(
            status_code=exc.status_code,
            content=exc.to_response(),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
        await logger.aexception(
            "rewind.unhandled_error",
            path=request.url.path,
            error=str(exc),
        )
        return ORJSONResponse(
            status_code=500,
            content={
                "error": {
                    "message": "An internal error occurred.",
                    "type": "internal_error",
                    "code": 500,
                }
            },
        )
