"""Offset pagination for merged search results."""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, TypeVar

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

T = TypeVar("T")


@dataclass(frozen=True)
class PageWindow:
    """A 1-indexed page of ``limit`` items.

    Build it with ``PageWindow.clamped`` to normalize user input: page below
    1 becomes 1, a missing limit becomes the default, and the limit is
    bounded to ``[1, max_limit]``.
    """

    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE

    @classmethod
    def clamped(
        cls,
        page: Optional[int],
        limit: Optional[int],
        default_limit: int = DEFAULT_PAGE_SIZE,
        max_limit: int = MAX_PAGE_SIZE,
    ) -> "PageWindow":
        page = max(page or 1, 1)
        limit = min(max(limit or default_limit, 1), max_limit)
        return cls(page=page, limit=limit)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def slice(self, items: Sequence[T]) -> list[T]:
        """The items of this page from an already ordered sequence."""
        return list(items[self.offset : self.offset + self.limit])

    def page_count(self, total: int) -> int:
        """Pages needed for ``total`` items; 0 when there are none."""
        if total <= 0:
            return 0
        return math.ceil(total / self.limit)
