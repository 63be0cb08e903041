"""
Shared test fixtures.

Uses the in-memory stream store and an in-memory SQLite database.
Redis tests run only when ``REWIND_TEST_REDIS_URL`` points at a server.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from rewind.app import create_app
from rewind.config import Settings
from rewind.core.cache.memory import InMemoryStreamStore
from rewind.db.session import Database
from tests.factories import ScriptedInvoker, get_test_settings, text_parts


@pytest.fixture
def test_settings() -> Settings:
    return get_test_settings()


# Store Fixtures

@pytest.fixture
async def database() -> AsyncIterator[Database]:
    # StaticPool keeps the single in-memory connection alive across sessions
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    db = Database(engine)
    await db.create_tables()
    yield db
    await db.dispose()


@pytest.fixture
def memory_store() -> InMemoryStreamStore:
    return InMemoryStreamStore()


@pytest.fixture
def invoker() -> ScriptedInvoker:
    return ScriptedInvoker(text_parts("Hello", ", world", "!"))


# App + Client Fixtures

@pytest.fixture
async def app(
    test_settings: Settings,
    invoker: ScriptedInvoker,
    memory_store: InMemoryStreamStore,
) -> AsyncIterator[FastAPI]:
    application = create_app(test_settings, invoker=invoker, store=memory_store)
    # ASGITransport does not send lifespan events
    async with application.router.lifespan_context(application):
        yield application


@pytest.fixture
async def client(app: FastAPI) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def admin_headers() -> dict[str, str]:
    """Headers with admin authentication."""
    return {"Authorization": "Bearer test_admin_key"}
