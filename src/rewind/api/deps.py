"""
FastAPI dependency injection.

Central place for all shared dependencies used across routes. Long-lived
resources (store, task supervisor, invoker) live on ``app.state`` and are
created by the application lifespan.
"""

from __future__ import annotations

import hmac
from typing import Annotated

from fastapi import Depends, Header, Request

from rewind.common.errors import AuthenticationError, AuthorizationError
from rewind.config import Settings
from rewind.core.cache.store import StreamStore
from rewind.services.chat import ChatStreamService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> StreamStore:
    return request.app.state.store


def get_chat_service(request: Request) -> ChatStreamService:
    state = request.app.state
    return ChatStreamService(
        store=state.store,
        invoker=state.invoker,
        settings=state.settings.cache,
        tasks=state.tasks,
    )


def get_owner_id(
    x_rewind_user: Annotated[str | None, Header()] = None,
) -> str | None:
    """Owner id as forwarded by the upstream auth layer (trusted, not verified here)."""
    if x_rewind_user is None:
        return None
    return x_rewind_user.strip() or None


async def require_admin(
    authorization: Annotated[str | None, Header()] = None,
    settings: Settings = Depends(get_app_settings),
) -> None:
    """
    Require the master admin key.

    Accepts:
        - Authorization: Bearer <master key>
    """
    if not authorization:
        raise AuthenticationError("Missing Authorization header")

    parts = authorization.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Invalid Authorization header format. Expected: Bearer <key>")

    master_key = settings.auth.master_api_key
    if not master_key:
        raise AuthorizationError("Admin access is not configured")

    if not hmac.compare_digest(parts[1].strip(), master_key):
        raise AuthenticationError("Invalid API key")


# Annotated types for route signatures
AppSettings = Annotated[Settings, Depends(get_app_settings)]
Store = Annotated[StreamStore, Depends(get_store)]
ChatService = Annotated[ChatStreamService, Depends(get_chat_service)]
OwnerId = Annotated[str | None, Depends(get_owner_id)]
AdminAccess = Annotated[None, Depends(require_admin)]
