# survey_core/common/api/pagination.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Sequence

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


@dataclass(frozen=True)
class PageWindow:
    """
    One page over an already filtered and ordered sequence.
    """
    page: int
    limit: int
    total_items: int

    @property
    def start(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def end(self) -> int:
        return self.start + self.limit

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.end < self.total_items

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "currentPage": self.page,
            "totalPages": self.total_pages,
            "totalItems": self.total_items,
            "itemsPerPage": self.limit,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }


def paginate_sequence(items: Sequence[Any], *, page: int = DEFAULT_PAGE, limit: int = DEFAULT_LIMIT) -> tuple[list[Any], PageWindow]:
    """
    Shared slicing helper so every paged payload reports the same pagination block.
    Pages past the end yield an empty slice, never an error.
    """
    window = PageWindow(page=page, limit=limit, total_items=len(items))
    return list(items[window.start:window.end]), window
