"""Search API schemas."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from nexa_search.domain.services.search import SearchResult
from nexa_search.domain.services.search_analytics import SearchAnalytics
from nexa_search.domain.services.search_index import SearchIndex


class SearchIndexCreate(BaseModel):
    """Request body for registering an index."""

    id: str = Field(..., min_length=1, max_length=64, description="Index id (table name by default)")
    name: str = Field(..., min_length=1, description="Human readable label")
    fields: list[str] = Field(..., min_length=1, description="Columns used for text matching")
    weight: float = Field(default=1.0, gt=0, description="Relevance weight")
    enabled: bool = Field(default=True)
    table: Optional[str] = Field(default=None, description="Table name override")

    def to_index(self) -> SearchIndex:
        return SearchIndex(**self.model_dump())


class SearchIndexUpdate(BaseModel):
    """Request body for a partial index update."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1)
    fields: Optional[list[str]] = Field(default=None, min_length=1)
    weight: Optional[float] = Field(default=None, gt=0)
    enabled: Optional[bool] = None
    table: Optional[str] = None


class SearchIndexResponse(BaseModel):
    """A registered index."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    fields: list[str]
    weight: float
    enabled: bool
    table: Optional[str] = None


class SearchResponse(BaseModel):
    """Response schema for the search endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    data: list[dict[str, Any]] = Field(..., description="Matched records with _search metadata")
    total: int = Field(..., description="Sum of per-table match counts")
    page: int
    limit: int
    pages: int
    query: str
    filters: dict[str, Any] = Field(default_factory=dict)
    execution_time: int = Field(..., alias="executionTime", description="Milliseconds")

    @classmethod
    def from_result(cls, result: SearchResult) -> "SearchResponse":
        return cls.model_validate(result.to_dict())


class SuggestionsResponse(BaseModel):
    """Response schema for search with suggestions."""

    results: list[dict[str, Any]]
    suggestions: list[str]


class QueryCount(BaseModel):
    query: str
    count: int


class DateCount(BaseModel):
    date: str
    count: int


class SearchAnalyticsResponse(BaseModel):
    """Aggregate search analytics over a trailing window."""

    model_config = ConfigDict(populate_by_name=True)

    total_searches: int = Field(..., alias="totalSearches")
    popular_queries: list[QueryCount] = Field(..., alias="popularQueries")
    search_trends: list[DateCount] = Field(..., alias="searchTrends")
    average_results: float = Field(..., alias="averageResults")
    zero_result_queries: int = Field(..., alias="zeroResultQueries")

    @classmethod
    def from_analytics(cls, analytics: SearchAnalytics) -> "SearchAnalyticsResponse":
        return cls.model_validate(analytics.to_dict())
