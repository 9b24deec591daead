"""Metrics API routes for observability."""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter

from nexa_search.api.deps import AdminRequired, SearchEngineDep
from nexa_search.observability.metrics import get_collector

router = APIRouter(prefix="/api", tags=["metrics"])


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """Health check endpoint (public)."""
    return {
        "status": "healthy",
        "service": "nexa-search",
        "version": "0.1.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready")
async def readiness_check(engine: SearchEngineDep) -> dict[str, Any]:
    """Readiness check: the search engine is initialized with its indexes."""
    return {
        "ready": engine.initialized,
        "indexes": len(engine.get_indexes()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/metrics", dependencies=[AdminRequired])
async def get_metrics() -> dict[str, Any]:
    """Counters, gauges and histograms collected by the search engine."""
    return {
        "collected_at": datetime.now(timezone.utc).isoformat(),
        "application": get_collector().snapshot(),
    }
