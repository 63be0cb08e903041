"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rewind import __version__
from rewind.api.admin.router import admin_router
from rewind.api.middleware.logging import RequestLoggingMiddleware
from rewind.api.middleware.request_id import RequestIDMiddleware
from rewind.api.v1.router import v1_router
from rewind.common.errors import register_error_handlers
from rewind.common.logging import configure_logging
from rewind.common.tasks import TaskSupervisor
from rewind.config import CacheBackend, Settings, get_settings
from rewind.core.cache.factory import create_stream_store
from rewind.core.cache.maintenance import CleanupScheduler
from rewind.core.cache.store import StreamStore
from rewind.db.session import Database
from rewind.providers.base import ModelInvoker


def _build_lifespan(injected_store: StreamStore | None):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        settings: Settings = app.state.settings
        configure_logging(settings.logging.level, settings.logging.format)

        log = structlog.stdlib.get_logger()
        await log.ainfo(
            "rewind.startup",
            version=__version__,
            env=settings.env,
            cache_enabled=settings.cache.enabled,
            cache_backend=settings.cache.backend.value,
            invoker=app.state.invoker.provider_name if app.state.invoker else None,
        )

        database: Database | None = None
        if injected_store is None and settings.cache.backend == CacheBackend.DATABASE:
            database = Database.from_settings(settings.database)
            await log.ainfo("rewind.database", url=settings.database.url.split("@")[-1])
            if settings.database.create_tables:
                await database.create_tables()

        store = injected_store or create_stream_store(settings, database=database)
        tasks = TaskSupervisor()
        scheduler = CleanupScheduler(store, interval_seconds=settings.cache.cleanup_interval_seconds)
        scheduler.start()
        await log.ainfo(
            "rewind.cache.ready",
            backend=store.backend_name,
            injected=injected_store is not None,
        )

        app.state.store = store
        app.state.tasks = tasks
        app.state.scheduler = scheduler
        app.state.database = database

        try:
            yield
        finally:
            await scheduler.stop()
            # Let in-flight cache writes finish before the store goes away
            await tasks.drain(timeout=settings.cache.write_drain_timeout_seconds)

            if injected_store is None:
                await store.close()
            if database is not None:
                await database.dispose()

            invoker = app.state.invoker
            if invoker is not None:
                await invoker.close()

            await log.ainfo("rewind.shutdown")

    return lifespan


def create_app(
    settings: Settings | None = None,
    *,
    invoker: ModelInvoker | None = None,
    store: StreamStore | None = None,
) -> FastAPI:
    """
    Application factory, called by Uvicorn.

    ``invoker`` is the model backend streams are produced by; without one
    the chat endpoint answers 503. A ``store`` passed in is used as is and
    left open at shutdown.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Rewind",
        description="Replay cache for streamed LLM responses.",
        version=__version__,
        docs_url="/docs" if settings.env == "development" else None,
        redoc_url="/redoc" if settings.env == "development" else None,
        lifespan=_build_lifespan(store),
    )
    app.state.settings = settings
    app.state.invoker = invoker

    # Middleware (order matters; outermost first)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.env == "development" else [],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["x-rewind-cache", "x-request-id"],
    )

    register_error_handlers(app)

    app.include_router(v1_router)
    app.include_router(admin_router)

    return app
