"""Async SQLAlchemy engine and session factory for the ``sql`` store backend.

The engine is created lazily on first use and shared across the process.
Only :class:`~interview_store.sql_store.SqlKeyValueStore` touches it; the
in-memory backend never imports a database driver.  Call
``dispose_engine()`` during graceful shutdown.
"""

import os

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from interview_store.config import get_async_url
from interview_store.models.base import Base

# Pool tuning, overridable so operators can scale without code changes.
_POOL_SIZE = int(os.getenv("PG_POOL_SIZE", "5"))
_MAX_OVERFLOW = int(os.getenv("PG_MAX_OVERFLOW", "10"))

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(url: str | None = None) -> AsyncEngine:
    """Return (and lazily create) the singleton async engine.

    ``url`` is only honoured on the first call; afterwards the cached
    engine is returned regardless.
    """
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            url or get_async_url(),
            echo=False,
            pool_size=_POOL_SIZE,
            max_overflow=_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return (and lazily create) the async session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def create_schema() -> None:
    """Create missing tables directly from the ORM metadata.

    Intended for local development and throwaway databases; production
    deployments apply the Alembic migrations instead.
    """
    # Register the table on Base.metadata
    import interview_store.models.kv  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose the engine's connection pool (call on app shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
