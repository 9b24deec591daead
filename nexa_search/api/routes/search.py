"""Search API routes.

Provides endpoints for:
- GET /search - Search across all registered tables
- GET /search/suggestions - Search plus suggestions from prior queries
- GET /search/analytics - Aggregate search analytics
- /search/indexes - Index administration (optionally token protected)
"""

import json
from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from nexa_search.api.deps import AdminRequired, SearchEngineDep
from nexa_search.api.schemas.search import (
    SearchAnalyticsResponse,
    SearchIndexCreate,
    SearchIndexResponse,
    SearchIndexUpdate,
    SearchResponse,
    SuggestionsResponse,
)
from nexa_search.domain.services.search import (
    IndexNotFoundError,
    SearchError,
    SearchQuery,
)

router = APIRouter(prefix="/search", tags=["search"])


def _parse_filters(raw: Optional[str]) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        filters = json.loads(raw)
    except json.JSONDecodeError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="filters must be a JSON object",
        )
    if not isinstance(filters, dict):
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="filters must be a JSON object",
        )
    return filters


def _split_ids(values: Optional[list[str]]) -> list[str]:
    """Accept both ``?include=a&include=b`` and ``?include=a,b``."""
    if not values:
        return []
    return [part.strip() for value in values for part in value.split(",") if part.strip()]


def _search_failed(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=str(e) if isinstance(e, SearchError) else f"Search failed: {e}",
    )


@router.get(
    "",
    response_model=SearchResponse,
    summary="Search content",
    description="Search across every enabled index. Results from all tables are "
                "merged, sorted by relevance (or the sort field) and paginated.",
)
async def search(
    engine: SearchEngineDep,
    q: str = Query("", description="Free-text query"),
    filters: Optional[str] = Query(None, description="JSON object of exact-match filters"),
    sort: Optional[str] = Query(None, description="Field to sort by (default: relevance)"),
    order: Optional[Literal["asc", "desc"]] = Query(None, description="Sort direction"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(
        None, ge=1, description="Page size (default and maximum come from settings)"
    ),
    include: Optional[list[str]] = Query(None, description="Index ids to search"),
    exclude: Optional[list[str]] = Query(None, description="Index ids to skip"),
):
    """Search across all registered indexes.

    ``include`` restricts the searched indexes; ``exclude`` removes some.
    When both are given ``include`` wins.
    """
    query = SearchQuery(
        q=q,
        filters=_parse_filters(filters),
        sort=sort,
        order=order,
        page=page,
        limit=limit,
        include=_split_ids(include),
        exclude=_split_ids(exclude),
    )

    try:
        result = await engine.search(query)
    except Exception as e:
        raise _search_failed(e)

    return SearchResponse.from_result(result)


@router.get("/suggestions", response_model=SuggestionsResponse)
async def search_with_suggestions(
    engine: SearchEngineDep,
    q: str = Query("", description="Free-text query"),
):
    """Search and suggest up to five related prior queries."""
    try:
        payload = await engine.search_with_suggestions(q)
    except Exception as e:
        raise _search_failed(e)

    return SuggestionsResponse(**payload)


@router.get("/analytics", response_model=SearchAnalyticsResponse)
async def search_analytics(
    engine: SearchEngineDep,
    days: int = Query(30, ge=1, le=365, description="Trailing window in days"),
):
    """Aggregate statistics over the trailing ``days`` days."""
    try:
        analytics = await engine.get_analytics(days)
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Analytics failed: {e}",
        )

    return SearchAnalyticsResponse.from_analytics(analytics)


# =============================================================================
# INDEX ADMINISTRATION
# =============================================================================


@router.get(
    "/indexes",
    response_model=list[SearchIndexResponse],
    dependencies=[AdminRequired],
)
async def list_indexes(engine: SearchEngineDep):
    """List registered indexes in registration order."""
    return [SearchIndexResponse.model_validate(i) for i in engine.get_indexes()]


@router.get(
    "/indexes/{index_id}",
    response_model=SearchIndexResponse,
    dependencies=[AdminRequired],
)
async def get_index(index_id: str, engine: SearchEngineDep):
    index = engine.get_index(index_id)
    if index is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Index {index_id} not found",
        )
    return SearchIndexResponse.model_validate(index)


@router.post(
    "/indexes",
    response_model=SearchIndexResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[AdminRequired],
)
async def register_index(request: SearchIndexCreate, engine: SearchEngineDep):
    """Register an index. An existing index with the same id is replaced."""
    try:
        index = engine.register_index(request.to_index())
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    return SearchIndexResponse.model_validate(index)


@router.patch(
    "/indexes/{index_id}",
    response_model=SearchIndexResponse,
    dependencies=[AdminRequired],
)
async def update_index(
    index_id: str,
    request: SearchIndexUpdate,
    engine: SearchEngineDep,
):
    """Merge the given fields into an existing index."""
    try:
        # null only means "clear" for the table override
        updates = {
            k: v
            for k, v in request.model_dump(exclude_unset=True).items()
            if v is not None or k == "table"
        }
        index = engine.update_index(index_id, updates)
    except IndexNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(e),
        )
    return SearchIndexResponse.model_validate(index)


@router.delete(
    "/indexes/{index_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[AdminRequired],
)
async def unregister_index(index_id: str, engine: SearchEngineDep):
    """Remove an index. Removing an unknown id is not an error."""
    engine.unregister_index(index_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
