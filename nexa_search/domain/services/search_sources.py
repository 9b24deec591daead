"""Table sources: the count+fetch capability the search engine queries.

A source answers two questions for one table: how many rows match a
predicate, and which rows make up one page of those matches. The engine
builds a backend-neutral TablePredicate and each source compiles it for its
own storage.

Usage:
    resolver = SqlSourceResolver(Base.metadata, session_factory)
    source = resolver.resolve(index)
    total = await source.count(predicate)
    rows = await source.fetch_page(predicate, SortSpec(), offset=0, limit=20)
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

from sqlalchemy import MetaData, String, Table, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from nexa_search.domain.services.search_index import SearchError, SearchIndex
from nexa_search.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_RECENCY_COLUMN = "created_at"


class UnknownColumnError(SearchError):
    """Raised when a predicate or sort names a column the table lacks."""

    def __init__(self, table: str, column: str):
        super().__init__(f"Unknown column {column!r} on table {table!r}")
        self.table = table
        self.column = column


# =============================================================================
# PREDICATE AND ORDERING
# =============================================================================


@dataclass
class TablePredicate:
    """Match condition for one table.

    Every term must be contained (case-insensitively) in at least one of
    ``fields``; every filter must match exactly. No terms and no filters
    matches all rows.
    """

    terms: list[str] = field(default_factory=list)
    fields: list[str] = field(default_factory=list)
    filters: dict[str, Any] = field(default_factory=dict)

    @property
    def matches_all(self) -> bool:
        return not self.terms and not self.filters

    def matches(self, record: dict[str, Any]) -> bool:
        """Evaluate the predicate against an in-memory record."""
        for key, expected in self.filters.items():
            if record.get(key) != expected:
                return False

        for term in self.terms:
            if not any(
                record.get(f) is not None and term in str(record.get(f)).lower()
                for f in self.fields
            ):
                return False

        return True


@dataclass
class SortSpec:
    """Ordering for a page fetch; ``field=None`` means newest first."""

    field: Optional[str] = None
    descending: bool = True


@runtime_checkable
class TableSource(Protocol):
    """Count and page through the rows of one table."""

    async def count(self, predicate: TablePredicate) -> int: ...

    async def fetch_page(
        self,
        predicate: TablePredicate,
        sort: SortSpec,
        offset: int,
        limit: int,
    ) -> list[dict[str, Any]]: ...


# =============================================================================
# SQL SOURCE
# =============================================================================


class SqlTableSource:
    """TableSource backed by a SQLAlchemy table.

    Each call opens its own session so that concurrent fetches against
    different tables do not share a connection.
    """

    def __init__(
        self,
        table: Table,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self.table = table
        self._session_factory = session_factory

    def _column(self, name: str):
        try:
            return self.table.c[name]
        except KeyError:
            raise UnknownColumnError(self.table.name, name) from None

    def _text_column(self, name: str):
        column = self._column(name)
        if isinstance(column.type, String):
            return column
        return cast(column, String)

    def build_clauses(self, predicate: TablePredicate) -> list[ColumnElement]:
        """Compile a predicate into a list of clauses to AND together."""
        clauses: list[ColumnElement] = []

        for term in predicate.terms:
            clauses.append(
                or_(
                    *[
                        self._text_column(f).icontains(term, autoescape=True)
                        for f in predicate.fields
                    ]
                )
            )

        for key, value in predicate.filters.items():
            clauses.append(self._column(key) == value)

        return clauses

    def build_order_by(self, sort: SortSpec) -> list:
        if sort.field:
            column = self._column(sort.field)
            return [column.desc() if sort.descending else column.asc()]

        if DEFAULT_RECENCY_COLUMN in self.table.c:
            return [self.table.c[DEFAULT_RECENCY_COLUMN].desc()]

        return [c.desc() for c in self.table.primary_key.columns]

    async def count(self, predicate: TablePredicate) -> int:
        stmt = select(func.count()).select_from(self.table)
        clauses = self.build_clauses(predicate)
        if clauses:
            stmt = stmt.where(*clauses)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def fetch_page(
        self,
        predicate: TablePredicate,
        sort: SortSpec,
        offset: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        stmt = select(self.table)
        clauses = self.build_clauses(predicate)
        if clauses:
            stmt = stmt.where(*clauses)
        stmt = stmt.order_by(*self.build_order_by(sort)).offset(offset).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]


class SqlSourceResolver:
    """Resolve an index to a SqlTableSource by table name.

    Resolution happens once, when the index is registered. A table name
    missing from the metadata resolves to None.
    """

    def __init__(
        self,
        metadata: MetaData,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        self._metadata = metadata
        self._session_factory = session_factory

    def __call__(self, index: SearchIndex) -> Optional[TableSource]:
        return self.resolve(index)

    def resolve(self, index: SearchIndex) -> Optional[TableSource]:
        table = self._metadata.tables.get(index.table_name)
        if table is None:
            logger.warning(
                f"Table not found for index: {index.id}",
                index_id=index.id,
                table=index.table_name,
            )
            return None
        return SqlTableSource(table, self._session_factory)


# =============================================================================
# IN-MEMORY SOURCE
# =============================================================================


def _sort_key(value: Any) -> tuple:
    # None sorts before every concrete value
    return (value is not None, value)


class InMemoryTableSource:
    """TableSource over a list of dict records.

    Records without the sort field sort as if the value were None. Default
    ordering is ``created_at`` descending when present, else insertion order
    reversed.
    """

    def __init__(self, records: Optional[list[dict[str, Any]]] = None):
        self.records: list[dict[str, Any]] = list(records or [])

    def add(self, record: dict[str, Any]) -> None:
        self.records.append(record)

    async def count(self, predicate: TablePredicate) -> int:
        return sum(1 for r in self.records if predicate.matches(r))

    async def fetch_page(
        self,
        predicate: TablePredicate,
        sort: SortSpec,
        offset: int,
        limit: int,
    ) -> list[dict[str, Any]]:
        matched = [r for r in self.records if predicate.matches(r)]

        if sort.field:
            matched.sort(key=lambda r: _sort_key(r.get(sort.field)), reverse=sort.descending)
        elif any(DEFAULT_RECENCY_COLUMN in r for r in matched):
            matched.sort(key=lambda r: _sort_key(r.get(DEFAULT_RECENCY_COLUMN)), reverse=True)
        else:
            matched.reverse()

        return [dict(r) for r in matched[offset : offset + limit]]


__all__ = [
    "InMemoryTableSource",
    "SortSpec",
    "SqlSourceResolver",
    "SqlTableSource",
    "TablePredicate",
    "TableSource",
    "UnknownColumnError",
]
