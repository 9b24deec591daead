"""Nexa Search API - Main Application."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from nexa_search.api.middleware.request_context import RequestContextMiddleware
from nexa_search.api.routes import metrics as metrics_routes
from nexa_search.api.routes import search as search_routes
from nexa_search.config import Settings, get_settings
from nexa_search.domain.models import Base
from nexa_search.domain.services.search import SearchEngine
from nexa_search.domain.services.search_analytics import (
    SearchAnalyticsRecorder,
    SearchLogStore,
)
from nexa_search.domain.services.search_index import IndexRegistry
from nexa_search.domain.services.search_sources import SqlSourceResolver
from nexa_search.infra.db import dispose_async_engine, get_async_session_factory
from nexa_search.observability.logging import configure_logging


def build_search_engine(settings: Settings) -> SearchEngine:
    """Wire the search engine against the configured database."""
    session_factory = get_async_session_factory()
    return SearchEngine(
        registry=IndexRegistry(),
        resolver=SqlSourceResolver(Base.metadata, session_factory),
        analytics=SearchAnalyticsRecorder(SearchLogStore(session_factory)),
        table_timeout=settings.search_table_timeout_seconds,
        default_limit=settings.search_default_limit,
        max_limit=settings.search_max_limit,
        analytics_enabled=settings.search_analytics_enabled,
    )


def create_app(
    settings: Optional[Settings] = None,
    search_engine: Optional[SearchEngine] = None,
) -> FastAPI:
    """Create the API application.

    The search engine is built at startup unless one is passed in; it is
    shared by every request through ``app.state.search_engine``.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        # Startup
        app_settings = app.state.settings or get_settings()
        app.state.settings = app_settings
        configure_logging(
            level=app_settings.log_level,
            json_format=app_settings.log_json,
            service_name=app_settings.service_name,
        )
        owns_engine = app.state.search_engine is None
        if owns_engine:
            app.state.search_engine = build_search_engine(app_settings)
        await app.state.search_engine.initialize()
        yield
        # Shutdown
        await app.state.search_engine.aclose()
        if owns_engine:
            await dispose_async_engine()

    app = FastAPI(
        title="Nexa Search API",
        description="Multi-table search with relevance ranking and search analytics",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.search_engine = search_engine

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    # Request ids for log correlation
    app.add_middleware(RequestContextMiddleware)

    app.include_router(metrics_routes.router)
    app.include_router(search_routes.router)

    @app.get("/healthz")
    async def health_check() -> dict:
        """Health check endpoint."""
        return {"ok": True, "service": "nexa-search"}

    @app.get("/")
    async def root() -> dict:
        """Root endpoint."""
        return {
            "name": "Nexa Search API",
            "version": "0.1.0",
            "status": "running",
        }

    return app


app = create_app()
