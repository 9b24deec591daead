"""Domain services for Nexa Search."""

from nexa_search.domain.services.search import (
    SearchEngine,
    SearchError,
    SearchQuery,
    SearchResult,
)
from nexa_search.domain.services.search_analytics import (
    SearchAnalytics,
    SearchAnalyticsRecorder,
    SearchLogStore,
)
from nexa_search.domain.services.search_index import (
    IndexNotFoundError,
    IndexRegistry,
    SearchIndex,
)

__all__ = [
    "IndexNotFoundError",
    "IndexRegistry",
    "SearchAnalytics",
    "SearchAnalyticsRecorder",
    "SearchEngine",
    "SearchError",
    "SearchIndex",
    "SearchLogStore",
    "SearchQuery",
    "SearchResult",
]
