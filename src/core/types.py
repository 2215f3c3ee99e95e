"""Shared dataclasses and type helpers."""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, TypeVar

T = TypeVar("T")


@dataclass(slots=True)
class Page(Generic[T]):
    """One page of a list query plus the total row count before paging."""

    items: List[T]
    total: int
    page: int
    limit: int
    with_total_pages: bool = field(default=False)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def envelope(self, data: List[Any]) -> Dict[str, Any]:
        """Render the list envelope around already-serialised items."""
        body: Dict[str, Any] = {
            "data": data,
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
        }
        if self.with_total_pages:
            body["totalPages"] = self.total_pages
        return body


__all__ = ["Page"]
