"""API schemas."""

from nexa_search.api.schemas.search import (
    SearchAnalyticsResponse,
    SearchIndexCreate,
    SearchIndexResponse,
    SearchIndexUpdate,
    SearchResponse,
    SuggestionsResponse,
)

__all__ = [
    "SearchAnalyticsResponse",
    "SearchIndexCreate",
    "SearchIndexResponse",
    "SearchIndexUpdate",
    "SearchResponse",
    "SuggestionsResponse",
]
