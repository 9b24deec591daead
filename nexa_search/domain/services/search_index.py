"""Registry of searchable tables.

Each SearchIndex describes one table: which of its columns take part in text
matching, how much a match on it is worth, and whether it is searched at
all. The registry lives in process memory and is rebuilt from the defaults
on restart.
"""

from dataclasses import asdict, dataclass, field, fields as dataclass_fields, replace
from typing import Any, Optional

from nexa_search.observability.logging import get_logger

logger = get_logger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class SearchError(Exception):
    """Exception raised for search errors."""

    pass


class IndexNotFoundError(SearchError):
    """Raised when an index id is not registered."""

    def __init__(self, index_id: str):
        super().__init__(f"Index {index_id} not found")
        self.index_id = index_id


# =============================================================================
# MODEL
# =============================================================================


@dataclass
class SearchIndex:
    """One searchable table.

    Attributes:
        id: Unique key; also the table name unless ``table`` is set.
        name: Human label, attached to every result from this table.
        fields: Columns eligible for text matching (non-empty).
        weight: Relevance contribution of a match in this table.
        enabled: Disabled indexes are skipped at query time.
        table: Optional table name override.
    """

    id: str
    name: str
    fields: list[str] = field(default_factory=list)
    weight: float = 1.0
    enabled: bool = True
    table: Optional[str] = None

    def __post_init__(self):
        if not self.id:
            raise ValueError("index id is required")
        if not self.name:
            raise ValueError("index name is required")
        if not self.fields:
            raise ValueError(f"index {self.id} must declare at least one field")
        self.fields = list(self.fields)

    @property
    def table_name(self) -> str:
        return self.table or self.id

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


DEFAULT_INDEXES: tuple[SearchIndex, ...] = (
    SearchIndex(
        id="users",
        name="Users",
        fields=["name", "email", "phone"],
    ),
    SearchIndex(
        id="companies",
        name="Companies",
        fields=["name", "code", "description"],
    ),
    SearchIndex(
        id="partners",
        name="Partners",
        fields=["name", "code", "email", "phone", "address", "city", "state", "country"],
    ),
)

_UPDATABLE_FIELDS = {f.name for f in dataclass_fields(SearchIndex)} - {"id"}


# =============================================================================
# REGISTRY
# =============================================================================


class IndexRegistry:
    """In-memory registry of search indexes, keyed by id.

    Iteration order is registration order. Replacing an existing id keeps
    its original position.
    """

    def __init__(self):
        self._indexes: dict[str, SearchIndex] = {}

    def __len__(self) -> int:
        return len(self._indexes)

    def __contains__(self, index_id: object) -> bool:
        return index_id in self._indexes

    def register(self, index: SearchIndex) -> SearchIndex:
        """Insert or replace an index (last write wins)."""
        replaced = index.id in self._indexes
        self._indexes[index.id] = index
        logger.info(
            f"Registered search index: {index.name}",
            index_id=index.id,
            replaced=replaced,
        )
        return index

    def register_defaults(self) -> list[str]:
        """Register the built-in users, companies and partners indexes.

        An id that is already registered keeps its current definition.

        Returns:
            The ids that were added.
        """
        added = []
        for index in DEFAULT_INDEXES:
            if index.id in self._indexes:
                logger.info(
                    f"Keeping existing definition for default index: {index.id}",
                    index_id=index.id,
                )
                continue
            self.register(replace(index, fields=list(index.fields)))
            added.append(index.id)
        return added

    def unregister(self, index_id: str, strict: bool = False) -> Optional[SearchIndex]:
        """Remove an index.

        Args:
            index_id: Index to remove.
            strict: Raise IndexNotFoundError instead of ignoring an unknown id.

        Returns:
            The removed index, or None if it was not registered.
        """
        removed = self._indexes.pop(index_id, None)
        if removed is None:
            if strict:
                raise IndexNotFoundError(index_id)
            return None

        logger.info(f"Unregistered search index: {index_id}", index_id=index_id)
        return removed

    def update(self, index_id: str, updates: dict[str, Any]) -> SearchIndex:
        """Merge ``updates`` into an existing index.

        Raises:
            IndexNotFoundError: If the id is unknown.
            ValueError: If an update names an unknown attribute, tries to
                change the id, or leaves the index invalid.
        """
        index = self._indexes.get(index_id)
        if index is None:
            raise IndexNotFoundError(index_id)

        if "id" in updates and updates["id"] != index_id:
            raise ValueError("index id cannot be changed")

        unknown = set(updates) - _UPDATABLE_FIELDS - {"id"}
        if unknown:
            raise ValueError(f"unknown index attributes: {sorted(unknown)}")

        changes = {k: v for k, v in updates.items() if k != "id"}
        # Validate on a copy before touching the registered instance
        updated = replace(index, **changes)
        for key in changes:
            setattr(index, key, getattr(updated, key))

        logger.info(
            f"Updated search index: {index_id}",
            index_id=index_id,
            changed=sorted(changes),
        )
        return index

    def get(self, index_id: str) -> Optional[SearchIndex]:
        return self._indexes.get(index_id)

    def list_indexes(self) -> list[SearchIndex]:
        return list(self._indexes.values())

    def ids(self) -> list[str]:
        return list(self._indexes.keys())


__all__ = [
    "DEFAULT_INDEXES",
    "IndexNotFoundError",
    "IndexRegistry",
    "SearchError",
    "SearchIndex",
]
