"""Search analytics: the append-only search log and reports derived from it.

Every executed search is logged with its query text, total result count
and execution time. Reports (popular queries, daily trends, zero-result
rate) and query suggestions are computed from the log on demand.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from nexa_search.domain.models import SearchLog, utcnow
from nexa_search.infra.db import async_session_context
from nexa_search.observability.logging import get_logger
from nexa_search.observability.metrics import MetricsCollector, get_collector

logger = get_logger(__name__)

DEFAULT_ANALYTICS_DAYS = 30
POPULAR_QUERIES_LIMIT = 10
DEFAULT_SUGGESTIONS_LIMIT = 5
MAX_QUERY_LENGTH = 512


@dataclass
class SearchLogEntry:
    """One logged search."""

    query: str
    result_count: int
    execution_time: int
    timestamp: datetime = field(default_factory=utcnow)


@dataclass
class SearchAnalytics:
    """Aggregate report over a trailing window of days."""

    total_searches: int
    popular_queries: list[tuple[str, int]]
    search_trends: list[tuple[str, int]]
    average_results: float
    zero_result_queries: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalSearches": self.total_searches,
            "popularQueries": [
                {"query": q, "count": c} for q, c in self.popular_queries
            ],
            "searchTrends": [
                {"date": d, "count": c} for d, c in self.search_trends
            ],
            "averageResults": self.average_results,
            "zeroResultQueries": self.zero_result_queries,
        }


# =============================================================================
# STORE
# =============================================================================


class SearchLogStore:
    """Append-only search log persisted in the ``search_logs`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def append(self, entry: SearchLogEntry) -> None:
        async with async_session_context(self._session_factory) as session:
            session.add(
                SearchLog(
                    query=entry.query[:MAX_QUERY_LENGTH],
                    result_count=entry.result_count,
                    execution_time=entry.execution_time,
                    timestamp=entry.timestamp,
                )
            )

    async def query_by_time_range(
        self,
        start: datetime,
        end: Optional[datetime] = None,
    ) -> list[SearchLogEntry]:
        """Entries with ``start <= timestamp <= end``, oldest first."""
        stmt = select(SearchLog).where(SearchLog.timestamp >= start)
        if end is not None:
            stmt = stmt.where(SearchLog.timestamp <= end)
        stmt = stmt.order_by(SearchLog.timestamp.asc(), SearchLog.id.asc())

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_entry(row) for row in result.scalars().all()]

    async def query_containing(self, text: str) -> list[SearchLogEntry]:
        """Entries whose query contains ``text``, case-insensitive."""
        stmt = (
            select(SearchLog)
            .where(SearchLog.query.icontains(text, autoescape=True))
            .order_by(SearchLog.timestamp.asc(), SearchLog.id.asc())
        )

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [self._to_entry(row) for row in result.scalars().all()]

    @staticmethod
    def group_count(
        entries: Iterable[SearchLogEntry],
        key: Callable[[SearchLogEntry], Any],
    ) -> list[tuple[Any, int]]:
        """Count entries per key, most frequent first.

        Ties keep the order in which keys were first seen.
        """
        return Counter(key(e) for e in entries).most_common()

    @staticmethod
    def _to_entry(row: SearchLog) -> SearchLogEntry:
        return SearchLogEntry(
            query=row.query,
            result_count=row.result_count,
            execution_time=row.execution_time,
            timestamp=row.timestamp,
        )


# =============================================================================
# RECORDER
# =============================================================================


class SearchAnalyticsRecorder:
    """Best-effort search logging plus on-demand reports and suggestions."""

    def __init__(
        self,
        store: SearchLogStore,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self._metrics = metrics or get_collector()

    async def log(self, query: str, result_count: int, execution_time: int) -> None:
        """Append one search to the log. Never raises."""
        try:
            await self.store.append(
                SearchLogEntry(
                    query=query,
                    result_count=result_count,
                    execution_time=execution_time,
                )
            )
        except Exception as e:
            self._metrics.increment("search.analytics_failures")
            logger.error(
                "Failed to log search analytics",
                exc_info=True,
                query=query,
                error=str(e),
            )

    async def get_analytics(self, days: int = DEFAULT_ANALYTICS_DAYS) -> SearchAnalytics:
        """Report over the trailing ``days`` days."""
        start = utcnow() - timedelta(days=days)
        entries = await self.store.query_by_time_range(start)

        total = len(entries)
        popular = self.store.group_count(entries, key=lambda e: e.query)
        trends = self.store.group_count(entries, key=lambda e: e.timestamp.date().isoformat())

        return SearchAnalytics(
            total_searches=total,
            popular_queries=popular[:POPULAR_QUERIES_LIMIT],
            search_trends=sorted(trends),
            average_results=(
                sum(e.result_count for e in entries) / total if total else 0.0
            ),
            zero_result_queries=sum(1 for e in entries if e.result_count == 0),
        )

    async def suggest(
        self,
        partial_query: str,
        limit: int = DEFAULT_SUGGESTIONS_LIMIT,
    ) -> list[str]:
        """Prior queries containing ``partial_query``, most frequent first.

        The exact input string is never suggested back.
        """
        entries = await self.store.query_containing(partial_query)
        counts = self.store.group_count(entries, key=lambda e: e.query)

        return [q for q, _ in counts if q != partial_query][:limit]


__all__ = [
    "SearchAnalytics",
    "SearchAnalyticsRecorder",
    "SearchLogEntry",
    "SearchLogStore",
]
