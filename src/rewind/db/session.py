"""Async database engine and session management."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from rewind.config import DatabaseSettings
from rewind.models import Base

logger = structlog.stdlib.get_logger()


class Database:
    """
    Owns one async engine and its session factory.

    Created at application startup and disposed at shutdown; nothing in the
    package opens a connection at import time.
    """

    def __init__(self, engine: AsyncEngine) -> None:
        self.engine = engine
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: DatabaseSettings) -> Database:
        kwargs: dict = {"echo": settings.echo, "pool_pre_ping": True}
        # SQLite engines take no pool sizing options
        if not settings.url.startswith("sqlite"):
            kwargs.update(
                pool_size=settings.pool_size,
                max_overflow=settings.max_overflow,
                pool_recycle=300,
            )
        return cls(create_async_engine(settings.url, **kwargs))

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await logger.ainfo("database.tables_ready")

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session that commits on success and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        await self.engine.dispose()
