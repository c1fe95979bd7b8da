"""Engine and sessions for the document store.

The engine is built lazily from the settings handed to `configure_database`
(the application does this at startup) or from the process settings.
PostgreSQL via asyncpg is the deployment target; SQLite URLs are accepted
for local runs and get no connection pool options.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from observer.config import Settings
from observer.config import settings as default_settings

logger = logging.getLogger(__name__)

_settings: Settings = default_settings
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def configure_database(settings: Settings) -> None:
    """Use settings for the engine created on next use.

    Has no effect on an engine that already exists; call close_db() first.
    """
    global _settings
    if _engine is not None:
        logger.warning("Database engine already created; new settings ignored")
        return
    _settings = settings


def engine_options(settings: Settings) -> dict[str, Any]:
    url = settings.resolved_database_url
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            _settings.resolved_database_url, **engine_options(_settings)
        )
        logger.info(f"Database engine created for {_engine.url.render_as_string()}")
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, closed afterwards.

    Handlers commit explicitly; anything uncommitted is rolled back on close.
    """
    async with get_session_factory()() as session:
        yield session


async def init_db() -> None:
    """Create the documents table if missing."""
    from observer.persistence.tables import Base

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine; the next use creates a new one."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def health_check() -> bool:
    """True if a trivial query succeeds."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        return False
    return True
