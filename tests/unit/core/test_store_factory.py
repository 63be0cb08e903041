"""Tests for stream store selection."""

from unittest.mock import MagicMock

import pytest

from rewind.core.cache.database import DatabaseStreamStore
from rewind.core.cache.factory import create_stream_store
from rewind.core.cache.memory import InMemoryStreamStore
from rewind.core.cache.redis_store import RedisStreamStore
from rewind.db.session import Database
from tests.factories import get_test_settings


@pytest.mark.unit
class TestCreateStreamStore:
    def test_memory(self) -> None:
        store = create_stream_store(get_test_settings(backend="memory"))
        assert isinstance(store, InMemoryStreamStore)

    def test_database(self, database: Database) -> None:
        store = create_stream_store(get_test_settings(backend="database"), database=database)
        assert isinstance(store, DatabaseStreamStore)
        assert store.backend_name == "database"

    def test_database_requires_instance(self) -> None:
        with pytest.raises(ValueError, match="requires a Database"):
            create_stream_store(get_test_settings(backend="database"))

    def test_redis_with_client(self) -> None:
        store = create_stream_store(get_test_settings(backend="redis"), redis_client=MagicMock())
        assert isinstance(store, RedisStreamStore)

    def test_redis_from_settings(self) -> None:
        # Client creation is lazy; no connection is made here
        store = create_stream_store(get_test_settings(backend="redis"))
        assert isinstance(store, RedisStreamStore)


@pytest.mark.unit
class TestCacheSettings:
    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValueError):
            get_test_settings(backend="memcached")

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from rewind.config import Settings

        monkeypatch.setenv("REWIND_CACHE__BACKEND", "redis")
        monkeypatch.setenv("REWIND_CACHE__DEFAULT_TTL_SECONDS", "120")
        settings = Settings()
        assert settings.cache.backend == "redis"
        assert settings.cache.default_ttl_seconds == 120

    def test_flat_master_key_alias(self, monkeypatch: pytest.MonkeyPatch) -> None:
        from rewind.config import Settings

        monkeypatch.setenv("REWIND_MASTER_API_KEY", "sekret")
        assert Settings().auth.master_api_key == "sekret"
