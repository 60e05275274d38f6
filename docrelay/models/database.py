"""
Async database engine and session factory.
PostgreSQL (asyncpg) in production; SQLite (aiosqlite) works for local runs and tests.
"""

from typing import Any, Optional

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from docrelay.config import settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    pass


def create_engine_for_url(database_url: str, echo: Optional[bool] = None) -> AsyncEngine:
    """Build an async engine with pool settings suited to the backend."""
    url = make_url(database_url)
    engine_kwargs: dict[str, Any] = {
        "echo": settings.DB_ECHO if echo is None else echo,
        "pool_pre_ping": True,
    }

    if url.get_backend_name() == "sqlite":
        # Every session gets its own connection so conditional updates race for real
        engine_kwargs["poolclass"] = NullPool
        engine_kwargs["connect_args"] = {"timeout": 30}
    else:
        engine_kwargs["pool_size"] = settings.DB_POOL_SIZE
        engine_kwargs["max_overflow"] = settings.DB_MAX_OVERFLOW

    return create_async_engine(database_url, **engine_kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


engine = create_engine_for_url(settings.DATABASE_URL)
async_session_factory = create_session_factory(engine)


async def init_db(target: Optional[AsyncEngine] = None) -> None:
    """Create tables that do not exist yet."""
    # Register models on Base.metadata
    from docrelay.models import tables  # noqa: F401

    target = target or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialised", backend=target.url.get_backend_name())


async def close_db() -> None:
    """Dispose the engine's connection pool."""
    await engine.dispose()
