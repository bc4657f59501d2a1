"""Async SQLAlchemy database setup."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def normalize_async_url(url: str) -> str:
    """Coerce common sync database URLs into their async-driver variants.

    ``sqlite:///`` becomes ``sqlite+aiosqlite:///`` and ``postgresql://``
    becomes ``postgresql+asyncpg://``. Anything else is returned unchanged.
    """
    u = (url or "").strip()
    if u.startswith("sqlite:///") and "aiosqlite" not in u:
        return u.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    if u.startswith("postgresql://") and "+asyncpg" not in u:
        return u.replace("postgresql://", "postgresql+asyncpg://", 1)
    return u


class Database:
    """Async database connection manager.

    Every DAO opens its unit of work through ``session()``, which commits on
    success and rolls back when the block raises.
    """

    def __init__(self, database_url: str):
        database_url = normalize_async_url(database_url)
        self._is_sqlite = database_url.startswith("sqlite")

        connect_args = {}
        if self._is_sqlite:
            # Long busy timeout keeps concurrent writers from failing fast
            connect_args["timeout"] = 30

        self._engine: AsyncEngine = create_async_engine(
            database_url,
            echo=False,
            future=True,
            connect_args=connect_args,
        )
        self._async_session: async_sessionmaker[AsyncSession] = (
            async_sessionmaker(
                self._engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        )

    @property
    def engine(self) -> AsyncEngine:
        """Get the async engine instance."""
        return self._engine

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope around a series of operations.

        Usage:
            async with db.session() as session:
                session.add(model)

        Yields:
            AsyncSession: An async SQLAlchemy session.
        """
        async with self._async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init_db(self) -> None:
        """Create all tables from the ORM metadata if they don't exist.

        For deployed databases, run the Alembic migrations instead.
        """
        async with self._engine.begin() as conn:
            if conn.dialect.name == "sqlite":
                # WAL lets the webhook readers run alongside publish writers
                await conn.execute(text("PRAGMA journal_mode=WAL"))
                await conn.execute(text("PRAGMA busy_timeout=30000"))
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections and dispose of the engine."""
        await self._engine.dispose()
