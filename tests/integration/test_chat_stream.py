"""Integration tests for the cached chat stream endpoint."""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from rewind.app import create_app
from rewind.core.cache.memory import InMemoryStreamStore
from rewind.providers.base import ModelInvoker
from tests.factories import ScriptedInvoker, chat_body, get_test_settings, text_parts


@asynccontextmanager
async def _serve(
    invoker: ModelInvoker | None,
    store: InMemoryStreamStore | None = None,
    **cache_overrides,
) -> AsyncIterator[AsyncClient]:
    app = create_app(
        get_test_settings(**cache_overrides),
        invoker=invoker,
        store=store or InMemoryStreamStore(),
    )
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c


def _events(body: str) -> list[str]:
    return [line[len("data: "):] for line in body.split("\n") if line.startswith("data: ")]


@pytest.mark.integration
class TestChatStream:
    async def test_first_request_misses_and_streams(
        self, client: AsyncClient, invoker: ScriptedInvoker
    ) -> None:
        response = await client.post(
            "/v1/chat/stream",
            json=chat_body("Hello"),
            headers={"x-rewind-user": "user-1"},
        )

        assert response.status_code == 200
        assert "text/event-stream" in response.headers["content-type"]
        assert response.headers["x-rewind-cache"] == "MISS"
        assert response.headers.get("x-rewind-request-id") is not None
        assert response.headers.get("x-request-id") is not None

        events = _events(response.text)
        assert events[-1] == "[DONE]"
        content = "".join(
            e["text_delta"] for e in map(json.loads, events[:-1]) if e["type"] == "text-delta"
        )
        assert content == "Hello, world!"
        assert len(invoker.calls) == 1

    async def test_identical_request_is_replayed(
        self,
        app: FastAPI,
        client: AsyncClient,
        invoker: ScriptedInvoker,
        memory_store: InMemoryStreamStore,
    ) -> None:
        first = await client.post(
            "/v1/chat/stream", json=chat_body("Hello"), headers={"x-rewind-user": "u1"}
        )
        await app.state.tasks.drain()
        assert (await memory_store.get_stats("u1")).total == 1

        second = await client.post(
            "/v1/chat/stream", json=chat_body("Hello"), headers={"x-rewind-user": "u2"}
        )

        assert second.headers["x-rewind-cache"] == "HIT"
        assert second.text == first.text
        assert len(invoker.calls) == 1

    async def test_different_temperature_misses(
        self, app: FastAPI, client: AsyncClient, invoker: ScriptedInvoker
    ) -> None:
        await client.post("/v1/chat/stream", json=chat_body("Hello", temperature=0.1))
        await app.state.tasks.drain()
        response = await client.post("/v1/chat/stream", json=chat_body("Hello", temperature=0.9))

        assert response.headers["x-rewind-cache"] == "MISS"
        assert len(invoker.calls) == 2

    async def test_creative_request_is_never_replayed(
        self, app: FastAPI, client: AsyncClient, invoker: ScriptedInvoker
    ) -> None:
        for _ in range(2):
            response = await client.post("/v1/chat/stream", json=chat_body("Tell me a joke"))
            await app.state.tasks.drain()
            assert response.headers["x-rewind-cache"] == "MISS"

        assert len(invoker.calls) == 2

    async def test_invalid_request(self, client: AsyncClient) -> None:
        response = await client.post("/v1/chat/stream", json={"messages": []})
        assert response.status_code == 422

    async def test_upstream_failure(self) -> None:
        invoker = ScriptedInvoker([], fail_with=RuntimeError("provider down"))
        async with _serve(invoker) as client:
            response = await client.post("/v1/chat/stream", json=chat_body("Hello"))

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["type"] == "upstream_error"
        assert error["provider"] == "scripted"

    async def test_mid_stream_failure_ends_with_error_event(self) -> None:
        store = InMemoryStreamStore()
        invoker = ScriptedInvoker(
            text_parts("a", "b"), fail_with=ConnectionError("reset"), fail_after=1
        )
        async with _serve(invoker, store) as client:
            response = await client.post("/v1/chat/stream", json=chat_body("Hello"))

        assert response.status_code == 200
        events = _events(response.text)
        assert events[-1] == "[DONE]"
        assert json.loads(events[-2])["type"] == "error"
        assert await store.size() == 0

    async def test_no_invoker_configured(self) -> None:
        async with _serve(None) as client:
            response = await client.post("/v1/chat/stream", json=chat_body("Hello"))

        assert response.status_code == 503
        assert response.json()["error"]["type"] == "invoker_unavailable"

    async def test_cache_disabled_always_invokes(self) -> None:
        store = InMemoryStreamStore()
        invoker = ScriptedInvoker(text_parts("x"))
        async with _serve(invoker, store, enabled=False) as client:
            for _ in range(2):
                response = await client.post("/v1/chat/stream", json=chat_body("Hello"))
                assert response.headers["x-rewind-cache"] == "MISS"

        assert len(invoker.calls) == 2
        assert await store.size() == 0

    async def test_lifespan_drains_pending_writes(self) -> None:
        store = InMemoryStreamStore()
        invoker = ScriptedInvoker(text_parts("x"))
        async with _serve(invoker, store) as client:
            await client.post("/v1/chat/stream", json=chat_body("Hello"))

        assert await store.size() == 1
