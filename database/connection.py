"""
Async database engine and session management.

The engine is created once per process from settings.DATABASE_URL. PostgreSQL
(asyncpg) uses a connection pool; SQLite (aiosqlite, used in tests) opens a
fresh connection per session so concurrent sessions get independent
transactions.

Usage:
    async with get_async_session() as session:
        result = await session.execute(select(Branch))
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from database.models import Base
from shared.config import get_settings

logger = logging.getLogger(__name__)


def _engine_kwargs(database_url: str) -> dict[str, Any]:
    if database_url.startswith("sqlite"):
        return {"poolclass": NullPool, "connect_args": {"timeout": 15}}
    return {"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}


def make_engine(database_url: str) -> AsyncEngine:
    return create_async_engine(database_url, echo=False, **_engine_kwargs(database_url))


engine: AsyncEngine = make_engine(get_settings().DATABASE_URL)

AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    engine, expire_on_commit=False
)


@asynccontextmanager
async def get_async_session() -> AsyncIterator[AsyncSession]:
    """
    Yield a session bound to the process engine and always close it.

    Callers own commit/rollback; anything left uncommitted is rolled back on close.
    """
    session = AsyncSessionLocal()
    try:
        yield session
    finally:
        await session.close()


def is_postgres(session: AsyncSession) -> bool:
    """True when the session is bound to PostgreSQL (enables SERIALIZABLE / FOR UPDATE)."""
    return session.bind is not None and session.bind.dialect.name == "postgresql"


async def create_all() -> None:
    """Create all tables. Used by tests and local development; production uses Alembic."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema created")


async def drop_all() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
