# movieshelf/services/pagination.py
from __future__ import annotations

"""
Page resolution for list endpoints.

`resolve()` folds the raw `page`, `limit` and `pageSize` inputs into one
canonical `PageRequest`; `build_metadata()` turns a total count into the
`pagination` block of a list response. Both are pure.

Conventions
-----------
- `pageSize` wins over `limit` whenever it is present.
- Sizes are clamped to [1, 100]; non-numeric input falls back to defaults.
- An empty collection has `total_pages == 0`.
"""

import math
from dataclasses import dataclass
from typing import Any, Optional

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageRequest:
    page: int
    size: int
    skip: int


@dataclass(frozen=True)
class PageMetadata:
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


def _as_int(value: Any) -> Optional[int]:
    """Coerce query input to int; None for missing/blank/non-numeric values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        text = str(value).strip()
        return int(text) if text else None
    except ValueError:
        return None


def resolve(page: Any = None, limit: Any = None, page_size: Any = None) -> PageRequest:
    """Normalize a page request into `{page, size, skip}`."""
    p = _as_int(page)
    p = DEFAULT_PAGE if p is None or p < 1 else p

    size = _as_int(page_size)
    if size is None:
        size = _as_int(limit)
    if size is None:
        size = DEFAULT_PAGE_SIZE
    size = min(MAX_PAGE_SIZE, max(1, size))

    return PageRequest(page=p, size=size, skip=(p - 1) * size)


def build_metadata(page: int, size: int, total_items: int) -> PageMetadata:
    """Metadata for a list response; `total_pages = ceil(total_items / size)`."""
    total = max(0, int(total_items))
    return PageMetadata(
        current_page=page,
        total_pages=math.ceil(total / size) if size > 0 else 0,
        total_items=total,
        items_per_page=size,
    )


__all__ = ["PageRequest", "PageMetadata", "resolve", "build_metadata", "MAX_PAGE_SIZE", "DEFAULT_PAGE_SIZE"]
