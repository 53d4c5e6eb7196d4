"""Async engine and transactional sessions for the battle database.

PostgreSQL (asyncpg) in production; SQLite (aiosqlite) for tests and local
runs. The schema is owned by Alembic; `create_schema` exists for tests.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from wavewarz_analytics.storage.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from wavewarz_analytics.config import Settings

logger = logging.getLogger(__name__)

_ASYNC_DRIVERS = {
    "postgresql://": "postgresql+asyncpg://",
    "sqlite:///": "sqlite+aiosqlite:///",
}


def async_database_url(database_url: str) -> str:
    """Rewrite a plain PostgreSQL/SQLite URL to its async driver form."""
    for plain, driver in _ASYNC_DRIVERS.items():
        if database_url.startswith(plain):
            return driver + database_url[len(plain) :]
    return database_url


class DatabaseManager:
    """Lazily creates the async engine and hands out one transaction per session."""

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        echo: bool = False,
    ) -> None:
        self.database_url = async_database_url(database_url)
        self._engine_kwargs: dict[str, Any] = {"echo": echo}
        if not self.database_url.startswith("sqlite"):
            self._engine_kwargs.update(pool_size=pool_size, max_overflow=max_overflow)

        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> DatabaseManager:
        return cls(settings.database.url)

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = create_async_engine(self.database_url, **self._engine_kwargs)
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error."""
        if self._sessions is None:
            self._sessions = async_sessionmaker(bind=self.engine, expire_on_commit=False)
        session = self._sessions()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def create_schema(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Created battle schema on %s", self.engine.url.render_as_string(hide_password=True))

    async def dispose(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None
        logger.debug("Database engine disposed")
