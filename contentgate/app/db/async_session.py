"""Async engine and sessions (SQLAlchemy 2.0).

Deployments run on PostgreSQL through asyncpg; the test suite points
``DATABASE_URL`` at SQLite through aiosqlite.
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from contentgate.app.core.config import settings
from contentgate.app.core.logging import get_logger

logger = get_logger(__name__)

_session_maker: Optional[async_sessionmaker[AsyncSession]] = None


def _engine_options(url: str) -> Dict[str, Any]:
    # SQLite drivers reject the QueuePool sizing arguments.
    if url.lower().startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_timeout": settings.db_pool_timeout,
        "pool_recycle": settings.db_pool_recycle,
        "pool_pre_ping": settings.db_pool_pre_ping,
    }


@lru_cache(maxsize=1)
def get_async_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """The process engine, created on first use from ``settings.database_url``."""
    url = database_url or settings.database_url
    options = _engine_options(url)
    engine = create_async_engine(url, echo=False, **options)
    logger.info(f"Database engine ready ({engine.dialect.name}, {options or 'default pool'})")
    return engine


def get_async_session_maker() -> async_sessionmaker[AsyncSession]:
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_async_engine(), expire_on_commit=False, autoflush=False
        )
    return _session_maker


@asynccontextmanager
async def get_async_session() -> AsyncIterator[AsyncSession]:
    """Session for code outside a request, e.g. startup tasks."""
    async with get_async_session_maker()() as session:
        yield session


async def get_db() -> AsyncIterator[AsyncSession]:
    """Request-scoped session: committed when the handler returns, rolled back if it raises."""
    async with get_async_session() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


async def init_async_db() -> None:
    """Create missing tables at startup."""
    from contentgate.app.db import models  # noqa: F401
    from contentgate.app.db.base import Base

    async with get_async_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def verify_connection() -> bool:
    try:
        async with get_async_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database unreachable: {e}")
        return False
    return True


async def close_async_engine() -> None:
    """Dispose the engine and forget cached factories."""
    global _session_maker

    try:
        await get_async_engine().dispose()
    except RuntimeError:
        # Raised when the engine was bound to a loop that has since closed.
        logger.debug("Engine dispose skipped: event loop already closed")
    finally:
        get_async_engine.cache_clear()
        _session_maker = None
