"""API routes."""

from nexa_search.api.routes import metrics, search

__all__ = ["metrics", "search"]
