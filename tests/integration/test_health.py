"""Integration tests for health endpoints."""

from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from httpx import AsyncClient

from rewind import __version__
from rewind.common.errors import CacheBackendError


@pytest.mark.integration
class TestHealth:
    async def test_liveness(self, client: AsyncClient) -> None:
        response = await client.get("/admin/v1/health/live")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["version"] == __version__

    async def test_readiness(self, client: AsyncClient) -> None:
        response = await client.get("/admin/v1/health/ready")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "cache_backend": "memory", "cache": "connected"}

    async def test_readiness_degraded(
        self, app: FastAPI, client: AsyncClient, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            app.state.store, "ping", AsyncMock(side_effect=CacheBackendError("down"))
        )
        response = await client.get("/admin/v1/health/ready")
        assert response.status_code == 503
        assert response.json()["cache"] == "disconnected"

    async def test_latency_header(self, client: AsyncClient) -> None:
        response = await client.get("/admin/v1/health/live")
        assert "x-rewind-latency-ms" in response.headers
