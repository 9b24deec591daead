"""Multi-table search engine.

This service:
1. Tokenizes a free-text query
2. Selects the enabled tables allowed by include/exclude
3. Counts and fetches one page per table, concurrently
4. Scores each fetched row by per-field substring matches
5. Merges, sorts and paginates the combined rows
6. Logs the query to the search analytics log in the background

A failing or slow table only degrades its own contribution to zero rows.

Pagination is applied twice: each table is already limited to one page of
``limit`` rows (at offset ``(page - 1) * limit``) before the merged list is
sorted and sliced again. The merged page is therefore exact only when at
most one table has more than ``limit`` matches; a globally exact top-K
would need every table over-fetched up to the page bound.

Usage:
    engine = SearchEngine(registry, resolver, recorder)
    await engine.initialize()

    result = await engine.search(SearchQuery(q="jane", limit=10))
    result = await engine.search_by_type("acme", "companies")
"""

import asyncio
import re
import time
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Callable, Literal, Optional

from nexa_search.domain.pagination import PageWindow
from nexa_search.domain.services.search_analytics import (
    DEFAULT_ANALYTICS_DAYS,
    SearchAnalytics,
    SearchAnalyticsRecorder,
)
from nexa_search.domain.services.search_index import (
    IndexNotFoundError,
    IndexRegistry,
    SearchError,
    SearchIndex,
)
from nexa_search.domain.services.search_sources import (
    SortSpec,
    TablePredicate,
    TableSource,
)
from nexa_search.observability.logging import (
    RequestContext,
    current_request_context,
    get_logger,
)
from nexa_search.observability.metrics import MetricsCollector, get_collector

logger = get_logger(__name__)


# =============================================================================
# CONSTANTS
# =============================================================================


DEFAULT_LIMIT = 20
MAX_LIMIT = 100
DEFAULT_TABLE_TIMEOUT = 5.0
PREFIX_BONUS = 0.5
METADATA_KEY = "_search"

_NON_WORD = re.compile(r"[^\w\s]")

SourceResolver = Callable[[SearchIndex], Optional[TableSource]]


# =============================================================================
# QUERY AND RESULT
# =============================================================================


@dataclass
class SearchQuery:
    """One search request.

    ``include`` wins over ``exclude`` when both are given.
    """

    q: str = ""
    filters: dict[str, Any] = field(default_factory=dict)
    sort: Optional[str] = None
    order: Optional[Literal["asc", "desc"]] = None
    page: int = 1
    limit: Optional[int] = None
    include: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)


@dataclass
class SearchResult:
    """One page of merged results plus totals across all searched tables."""

    data: list[dict[str, Any]]
    total: int
    page: int
    limit: int
    pages: int
    query: str
    filters: dict[str, Any]
    execution_time: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": self.data,
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages,
            "query": self.query,
            "filters": self.filters,
            "executionTime": self.execution_time,
        }


@dataclass
class _TableOutcome:
    index: SearchIndex
    rows: list[dict[str, Any]]
    total: int


# =============================================================================
# PURE HELPERS
# =============================================================================


def tokenize(text: Optional[str]) -> list[str]:
    """Lower-case, replace punctuation with spaces, split on whitespace.

    Word characters are Unicode-aware on purpose: accented letters stay
    inside their token ("José" gives "josé") rather than splitting it as an
    ASCII-only class would.
    """
    if not text:
        return []
    return _NON_WORD.sub(" ", text.lower()).split()


def select_index_ids(
    index_ids: list[str],
    include: Optional[list[str]] = None,
    exclude: Optional[list[str]] = None,
) -> list[str]:
    """Restrict registry ids by include (preferred) or exclude, keeping order."""
    if include:
        return [i for i in index_ids if i in include]
    if exclude:
        return [i for i in index_ids if i not in exclude]
    return list(index_ids)


def calculate_relevance(
    record: dict[str, Any],
    terms: list[str],
    index: SearchIndex,
) -> float:
    """Score a record: ``weight`` per (term, field) substring match, plus
    half a weight more when the field value starts with the term."""
    relevance = 0.0

    for term in terms:
        for field_name in index.fields:
            value = record.get(field_name)
            if not value:
                continue
            text = str(value).lower()
            if term in text:
                relevance += index.weight
                if text.startswith(term):
                    relevance += index.weight * PREFIX_BONUS

    return relevance


def _compare_values(a: Any, b: Any) -> int:
    try:
        if a < b:
            return -1
        if a > b:
            return 1
    except TypeError:
        pass
    return 0


def sort_results(
    rows: list[dict[str, Any]],
    sort: Optional[str] = None,
    order: Optional[str] = None,
) -> list[dict[str, Any]]:
    """Sort merged rows.

    Without ``sort`` rows are ordered by relevance, highest first. With
    ``sort`` the field value decides and the direction defaults to
    descending unless ``order == "asc"``. Incomparable values (None, mixed
    types) are treated as equal; the sort is stable.
    """
    if not sort:
        return sorted(
            rows,
            key=lambda r: r.get(METADATA_KEY, {}).get("relevance", 0),
            reverse=True,
        )

    sign = 1 if order == "asc" else -1
    return sorted(
        rows,
        key=cmp_to_key(lambda a, b: sign * _compare_values(a.get(sort), b.get(sort))),
    )


# =============================================================================
# ENGINE
# =============================================================================


class SearchEngine:
    """Fan a query out across registered tables and merge the results.

    One instance is shared by all requests. The registry is read-mostly; a
    query that races an admin change may search a stale set of indexes.
    """

    def __init__(
        self,
        registry: IndexRegistry,
        resolver: SourceResolver,
        analytics: SearchAnalyticsRecorder,
        *,
        table_timeout: float = DEFAULT_TABLE_TIMEOUT,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
        analytics_enabled: bool = True,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Initialize the search engine.

        Args:
            registry: Index registry to search.
            resolver: Maps an index to its table source (None if unresolvable).
            analytics: Recorder for the search log.
            table_timeout: Seconds allowed for one table's count+fetch.
            default_limit: Page size when a query does not give one.
            max_limit: Upper bound for page size.
            analytics_enabled: Whether searches are logged.
            metrics: Metrics collector (defaults to the process collector).
        """
        self.registry = registry
        self.analytics = analytics
        self._resolver = resolver
        self._sources: dict[str, Optional[TableSource]] = {}
        self._table_timeout = table_timeout
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._analytics_enabled = analytics_enabled
        self._metrics = metrics or get_collector()

        self._initialized = False
        self._init_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Register the default indexes once. Safe to call concurrently."""
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:
                return
            self.registry.register_defaults()
            for index in self.registry.list_indexes():
                self._bind_source(index)
            self._initialized = True

        self._metrics.set_gauge("search.indexes", len(self.registry))
        logger.info("Search engine initialized", indexes=self.registry.ids())

    # =========================================================================
    # INDEX MANAGEMENT
    # =========================================================================

    def _bind_source(self, index: SearchIndex) -> None:
        self._sources[index.id] = self._resolver(index)

    def register_index(self, index: SearchIndex) -> SearchIndex:
        registered = self.registry.register(index)
        self._bind_source(registered)
        self._metrics.set_gauge("search.indexes", len(self.registry))
        return registered

    def unregister_index(self, index_id: str, strict: bool = False) -> Optional[SearchIndex]:
        removed = self.registry.unregister(index_id, strict=strict)
        self._sources.pop(index_id, None)
        self._metrics.set_gauge("search.indexes", len(self.registry))
        return removed

    def update_index(self, index_id: str, updates: dict[str, Any]) -> SearchIndex:
        """Merge updates into an index; raises IndexNotFoundError if unknown."""
        previous = self.registry.get(index_id)
        previous_table = previous.table_name if previous else None

        index = self.registry.update(index_id, updates)
        if index.table_name != previous_table:
            self._bind_source(index)
        return index

    def get_indexes(self) -> list[SearchIndex]:
        return self.registry.list_indexes()

    def get_index(self, index_id: str) -> Optional[SearchIndex]:
        return self.registry.get(index_id)

    # =========================================================================
    # SEARCH
    # =========================================================================

    async def search(
        self,
        query: SearchQuery,
        context: Optional[RequestContext] = None,
    ) -> SearchResult:
        """Run a query across all selected, enabled tables.

        Args:
            query: The search request.
            context: Request fields for log lines; defaults to the request
                currently being served, if any.

        Raises:
            SearchError: On any failure outside a single table's fetch.
        """
        start = time.perf_counter()
        context = context or current_request_context()

        try:
            window = PageWindow.clamped(
                query.page,
                query.limit,
                default_limit=self._default_limit,
                max_limit=self._max_limit,
            )
            terms = tokenize(query.q)
            filters = dict(query.filters or {})
            sort = SortSpec(
                field=query.sort or None,
                descending=query.order != "asc",
            )

            selected = select_index_ids(self.registry.ids(), query.include, query.exclude)
            indexes = [
                index
                for index in (self.registry.get(i) for i in selected)
                if index is not None and index.enabled
            ]

            outcomes = await asyncio.gather(
                *[
                    self._search_table(index, terms, filters, sort, window, context)
                    for index in indexes
                ]
            )

            merged: list[dict[str, Any]] = []
            total = 0
            for outcome in outcomes:
                merged.extend(outcome.rows)
                total += outcome.total

            page_rows = window.slice(sort_results(merged, query.sort, query.order))

            elapsed = self._elapsed_ms(start)
            self._record_search(query.q or "", total, elapsed)

            return SearchResult(
                data=page_rows,
                total=total,
                page=window.page,
                limit=window.limit,
                pages=window.page_count(total),
                query=query.q or "",
                filters=filters,
                execution_time=elapsed,
            )

        except Exception as e:
            self._metrics.increment("search.errors")
            logger.error("Search error", context=context, exc_info=True, error=str(e))
            raise SearchError(f"Search failed: {e}") from e

    async def _search_table(
        self,
        index: SearchIndex,
        terms: list[str],
        filters: dict[str, Any],
        sort: SortSpec,
        window: PageWindow,
        context: Optional[RequestContext],
    ) -> _TableOutcome:
        """Count and fetch one table; any failure degrades it to zero."""
        table_log = logger.bind(index_id=index.id, table=index.table_name)
        degraded = _TableOutcome(index=index, rows=[], total=0)

        source = self._sources.get(index.id)
        if source is None:
            table_log.warning(f"Model not found for table: {index.table_name}", context=context)
            self._metrics.increment("search.table_failures", labels={"index": index.id})
            return degraded

        predicate = TablePredicate(terms=terms, fields=list(index.fields), filters=filters)

        try:
            total, rows = await asyncio.wait_for(
                self._count_and_fetch(source, predicate, sort, window),
                timeout=self._table_timeout,
            )
        except asyncio.TimeoutError:
            table_log.warning(
                f"Timed out searching table {index.table_name}",
                context=context,
                timeout_seconds=self._table_timeout,
            )
            self._metrics.increment("search.table_failures", labels={"index": index.id})
            return degraded
        except Exception as e:
            table_log.warning(
                f"Error searching table {index.table_name}",
                context=context,
                error=str(e),
            )
            self._metrics.increment("search.table_failures", labels={"index": index.id})
            return degraded

        for row in rows:
            row[METADATA_KEY] = {
                "index": index.name,
                "index_id": index.id,
                "relevance": calculate_relevance(row, terms, index),
            }

        return _TableOutcome(index=index, rows=rows, total=total)

    @staticmethod
    async def _count_and_fetch(
        source: TableSource,
        predicate: TablePredicate,
        sort: SortSpec,
        window: PageWindow,
    ) -> tuple[int, list[dict[str, Any]]]:
        total = await source.count(predicate)
        rows = await source.fetch_page(predicate, sort, window.offset, window.limit)
        return total, rows

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)

    # =========================================================================
    # ANALYTICS
    # =========================================================================

    def _record_search(self, query: str, total: int, elapsed: int) -> None:
        self._metrics.increment("search.requests")
        self._metrics.observe("search.latency_ms", elapsed)
        if total == 0:
            self._metrics.increment("search.zero_results")

        if not self._analytics_enabled:
            return

        task = asyncio.get_running_loop().create_task(
            self.analytics.log(query, total, elapsed)
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for background analytics writes to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()

    async def get_analytics(self, days: int = DEFAULT_ANALYTICS_DAYS) -> SearchAnalytics:
        return await self.analytics.get_analytics(days)

    # =========================================================================
    # CONVENIENCE WRAPPERS
    # =========================================================================

    async def search_with_filters(self, q: str, filters: dict[str, Any]) -> SearchResult:
        return await self.search(
            SearchQuery(q=q, filters=filters, page=1, limit=DEFAULT_LIMIT)
        )

    async def search_by_type(self, q: str, index_id: str) -> SearchResult:
        return await self.search(
            SearchQuery(q=q, include=[index_id], page=1, limit=DEFAULT_LIMIT)
        )

    async def search_with_suggestions(self, q: str) -> dict[str, list]:
        """Search, then suggest up to five related prior queries.

        A failed suggestion lookup leaves the results intact with no
        suggestions.
        """
        result = await self.search(SearchQuery(q=q))
        try:
            suggestions = await self.analytics.suggest(q)
        except Exception as e:
            logger.warning("Suggestion lookup failed", query=q, error=str(e))
            self._metrics.increment("search.suggestion_failures")
            suggestions = []
        return {"results": result.data, "suggestions": suggestions}


__all__ = [
    "DEFAULT_LIMIT",
    "IndexNotFoundError",
    "MAX_LIMIT",
    "SearchEngine",
    "SearchError",
    "SearchQuery",
    "SearchResult",
    "calculate_relevance",
    "select_index_ids",
    "sort_results",
    "tokenize",
]
