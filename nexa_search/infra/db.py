"""Database infrastructure for Nexa Search."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from nexa_search.config import get_settings


def get_async_engine() -> AsyncEngine:
    """Get async database engine."""
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=False,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the given engine."""
    return async_sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )


# Session factories
_async_engine = None
_async_session_factory = None


def get_async_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get async session factory (singleton)."""
    global _async_engine, _async_session_factory
    if _async_session_factory is None:
        _async_engine = get_async_engine()
        _async_session_factory = build_session_factory(_async_engine)
    return _async_session_factory


async def dispose_async_engine() -> None:
    """Dispose the singleton engine, if one was created."""
    global _async_engine, _async_session_factory
    if _async_engine is not None:
        await _async_engine.dispose()
    _async_engine = None
    _async_session_factory = None


@asynccontextmanager
async def async_session_context(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Async context manager for database sessions."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
