# This file parses page and sort query parameters for list endpoints.
# Sort fields are checked against an allowlist that maps API names to SQL columns, so the
# ORDER BY clause never interpolates caller input.

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SortSpec:
    field: str
    order: str

    @property
    def as_text(self) -> str:
        return f"{self.field}:{self.order}"

    def order_by(self, column_map: Mapping[str, str], *, tiebreaker: str = "id") -> str:
        """ORDER BY body for this sort; the tiebreaker keeps equal keys in a stable order."""

        direction = "DESC" if self.order == "desc" else "ASC"
        return f"{column_map[self.field]} {direction}, {tiebreaker} {direction}"


@dataclass(frozen=True)
class PageWindow:
    page: int
    page_size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def metadata(self, *, total_count: int, sort: SortSpec) -> dict[str, Any]:
        total_pages = 0 if total_count <= 0 else (total_count - 1) // self.page_size + 1
        return {
            "page": self.page,
            "page_size": self.page_size,
            "total_count": total_count,
            "total_pages": total_pages,
            "sort": sort.as_text,
        }


def parse_page_window(
    *,
    page: int,
    page_size: int | None,
    default_page_size: int,
    max_page_size: int,
) -> PageWindow:
    size = default_page_size if page_size is None else page_size
    if page < 1:
        raise ValueError("page must be >= 1")
    if size < 1:
        raise ValueError("page_size must be >= 1")
    if size > max_page_size:
        raise ValueError(f"page_size must be <= {max_page_size}")
    return PageWindow(page=page, page_size=size)


def parse_sort(
    *,
    requested_sort: str | None,
    default_sort: str,
    allowed_fields: Mapping[str, str],
) -> SortSpec:
    """Parse `field` or `field:asc|desc`; the order defaults to ascending."""

    field, _, order = (requested_sort or default_sort).strip().lower().partition(":")
    if not field:
        raise ValueError("sort cannot be empty")
    if field not in allowed_fields:
        supported = ", ".join(sorted(allowed_fields))
        raise ValueError(f"Unsupported sort field '{field}'. Supported fields: {supported}")
    order = order or "asc"
    if order not in {"asc", "desc"}:
        raise ValueError("sort order must be 'asc' or 'desc'")
    return SortSpec(field=field, order=order)
