from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from services.vault.app.errors import DatabaseNotInitializedError
from services.vault.app.logging import logger


class Database:
    """
    Process-wide storage client with an explicit lifecycle.

    Constructed empty at import time; `init()` builds the engine once during
    startup and every use before that fails fast instead of touching a
    half-configured client.
    """

    def __init__(self) -> None:
        self._engine: AsyncEngine | None = None
        self._sessionmaker: async_sessionmaker[AsyncSession] | None = None

    @property
    def is_initialized(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseNotInitializedError("database used before init()")
        return self._engine

    def init(self, url: str, auth_token: str | None = None) -> None:
        if self._engine is not None:
            return
        connect_args: dict[str, Any] = {}
        if auth_token:
            connect_args["auth_token"] = auth_token
        # NullPool avoids cross-event-loop pooled connections during tests and keeps behavior simple.
        self._engine = create_async_engine(url, pool_pre_ping=True, poolclass=NullPool, connect_args=connect_args)
        self._sessionmaker = async_sessionmaker(self._engine, expire_on_commit=False, class_=AsyncSession)
        logger.info("database_initialized", dialect=self._engine.dialect.name)

    def session(self) -> AsyncSession:
        if self._sessionmaker is None:
            raise DatabaseNotInitializedError("database used before init()")
        return self._sessionmaker()

    async def dispose(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        logger.info("database_disposed")


DATABASE = Database()


async def get_session() -> AsyncIterator[AsyncSession]:
    async with DATABASE.session() as session:
        yield session
