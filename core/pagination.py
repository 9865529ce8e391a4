"""
Pagination over a remote result set.

The page size is fixed by the remote query. Each page is a separate filter
state and therefore a separate cache entry; nothing here slices a larger
fetch.
"""

import math
from dataclasses import dataclass


DEFAULT_PAGE_SIZE = 20


@dataclass
class Paginator:
    """Current page plus boundary flags."""

    total_count: int = 0
    page_size: int = DEFAULT_PAGE_SIZE
    page: int = 1

    def __post_init__(self):
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1")
        if self.total_count < 0:
            raise ValueError("total_count must be non-negative")
        self.page = self.clamp(self.page)

    @property
    def total_pages(self) -> int:
        """At least one page, even for an empty result set."""
        return max(1, math.ceil(self.total_count / self.page_size))

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def clamp(self, page: int) -> int:
        return max(1, min(page, self.total_pages))

    def go_to_page(self, page: int) -> int:
        """Move to ``page`` clamped into [1, total_pages]; returns the new page."""
        self.page = self.clamp(page)
        return self.page

    def next_page(self) -> bool:
        """Advance one page. No-op returning False on the last page."""
        if not self.has_next_page:
            return False
        self.page += 1
        return True

    def prev_page(self) -> bool:
        """Go back one page. No-op returning False on the first page."""
        if not self.has_prev_page:
            return False
        self.page -= 1
        return True

    def update_total(self, total_count: int) -> None:
        """A new result set arrived; keep the page within range."""
        self.total_count = max(0, total_count)
        self.page = self.clamp(self.page)

    def to_dict(self) -> dict:
        return {
            "page": self.page,
            "page_size": self.page_size,
            "total_count": self.total_count,
            "total_pages": self.total_pages,
            "has_next_page": self.has_next_page,
            "has_prev_page": self.has_prev_page,
        }
