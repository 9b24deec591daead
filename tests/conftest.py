"""Pytest configuration and fixtures for Nexa Search tests.

This module provides fixtures for:
- Database: SQLite (aiosqlite) file database per test
- Search: registry, log store, analytics recorder and engine wired to it
- HTTP client: AsyncClient for FastAPI testing
"""

from collections.abc import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from nexa_search.config import Settings
from nexa_search.domain.models import Base
from nexa_search.domain.services.search import SearchEngine
from nexa_search.domain.services.search_analytics import (
    SearchAnalyticsRecorder,
    SearchLogStore,
)
from nexa_search.domain.services.search_index import IndexRegistry
from nexa_search.domain.services.search_sources import SqlSourceResolver
from nexa_search.infra.db import build_session_factory
from nexa_search.observability.metrics import MetricsCollector


# -----------------------------------------------------------------------------
# Test Settings
# -----------------------------------------------------------------------------


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings with safe defaults."""
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'search.db'}",
        search_table_timeout_seconds=2.0,
        search_admin_token=None,
        log_json=False,
    )


# -----------------------------------------------------------------------------
# Database Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
async def async_engine(test_settings):
    """Create an async SQLite engine with all tables.

    A file database (not :memory:) so every session gets its own
    connection, as it would against a real server.
    """
    engine = create_async_engine(test_settings.database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory."""
    return build_session_factory(async_engine)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create an async database session for seeding test data."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


# -----------------------------------------------------------------------------
# Search Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def metrics() -> MetricsCollector:
    """A private metrics collector so tests do not share counters."""
    return MetricsCollector()


@pytest.fixture
def log_store(session_factory) -> SearchLogStore:
    return SearchLogStore(session_factory)


@pytest.fixture
def recorder(log_store, metrics) -> SearchAnalyticsRecorder:
    return SearchAnalyticsRecorder(log_store, metrics=metrics)


@pytest.fixture
def search_engine(session_factory, recorder, metrics, test_settings) -> SearchEngine:
    """A search engine wired to the test database (not yet initialized)."""
    return SearchEngine(
        registry=IndexRegistry(),
        resolver=SqlSourceResolver(Base.metadata, session_factory),
        analytics=recorder,
        table_timeout=test_settings.search_table_timeout_seconds,
        default_limit=test_settings.search_default_limit,
        max_limit=test_settings.search_max_limit,
        metrics=metrics,
    )


@pytest.fixture
async def initialized_engine(search_engine) -> AsyncGenerator[SearchEngine, None]:
    await search_engine.initialize()
    yield search_engine
    await search_engine.aclose()


# -----------------------------------------------------------------------------
# FastAPI Test Client Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture
def test_app(test_settings, search_engine) -> FastAPI:
    """Create a FastAPI test application sharing the test search engine."""
    from nexa_search.main import create_app

    return create_app(settings=test_settings, search_engine=search_engine)


@pytest.fixture
async def client(test_app, search_engine) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing FastAPI endpoints."""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac
    await search_engine.aclose()


# -----------------------------------------------------------------------------
# Cleanup Fixtures
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset the settings cache before each test."""
    from nexa_search.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
