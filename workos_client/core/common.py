"""Pagination types shared by list endpoints."""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

MAX_LIMIT = 100


class Order(str, Enum):
    """Order of records in a list response."""
    ASC = "asc"
    DESC = "desc"


@dataclass
class ListMetadata:
    """Pagination cursors returned alongside a page of records."""
    # Cursor to receive records before a provided ID
    before: str = ""
    # Cursor to receive records after a provided ID
    after: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ListMetadata":
        data = data or {}
        return cls(before=data.get("before") or "", after=data.get("after") or "")


@dataclass
class PaginationParams:
    """Options controlling which page of records a list call returns."""
    limit: int = 10
    order: Order = Order.DESC
    before: str = ""
    after: str = ""

    def to_query(self) -> Dict[str, Any]:
        """Build query parameters, omitting empty cursors.

        Raises:
            ValueError: If limit is outside 1..100
        """
        if not 1 <= self.limit <= MAX_LIMIT:
            raise ValueError(f"limit must be between 1 and {MAX_LIMIT}")
        query: Dict[str, Any] = {"limit": self.limit, "order": Order(self.order).value}
        if self.before:
            query["before"] = self.before
        if self.after:
            query["after"] = self.after
        return query
