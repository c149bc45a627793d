"""Pagination helpers shared by list endpoints."""

import math
from dataclasses import dataclass
from typing import Optional

from .config import settings


@dataclass
class Pagination:
    page: int
    limit: int
    total: int
    total_pages: int
    offset: int

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev_page(self) -> bool:
        return self.page > 1

    def as_dict(self) -> dict:
        return {
            "current_page": self.page,
            "items_per_page": self.limit,
            "total_items": self.total,
            "total_pages": self.total_pages,
            "has_next_page": self.has_next_page,
            "has_prev_page": self.has_prev_page,
        }


def get_pagination(page: Optional[int], limit: Optional[int], total: int) -> Pagination:
    """Clamp page/limit and compute the offset for a result set of ``total`` rows."""
    limit = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    total_pages = math.ceil(total / limit) if total else 0
    page = max(1, min(page or 1, total_pages or 1))
    return Pagination(
        page=page,
        limit=limit,
        total=total,
        total_pages=total_pages,
        offset=(page - 1) * limit,
    )
