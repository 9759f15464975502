"""
Directory query contract.

A :class:`QueryRequest` describes one page of the directory: which rows match
(``search``, ``class_filter``, ``min_score``/``max_score``), how they are
ordered (``sort``/``order``, ties broken by ``id`` ascending), and which slice
is returned (``page``/``limit``). A :class:`QueryResult` carries that slice
plus counts over the whole filtered set.

Requests are immutable and validated before use on both sides of the wire:
the HTTP client rejects a malformed request locally, and the server rejects
it again because it is authoritative.

Wire format (query string and JSON body) uses the camelCase names
``minScore``, ``maxScore``, ``totalPages``, ``currentPage``,
``hasNextPage``, ``hasPreviousPage`` and ``class``.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from account_directory.errors import InvalidRequest

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT = "rank"
DEFAULT_ORDER = "asc"

# Wire sort name -> directory column.
SORT_FIELDS: dict[str, str] = {
    "rank": "rank",
    "username": "username",
    "class": "class_name",
    "score": "score",
    "id": "id",
}
ORDERS = ("asc", "desc")


def _parse_int(name: str, raw: Any) -> int | None:
    """Parse an optional integer query parameter."""
    if raw is None or (isinstance(raw, str) and raw.strip() == ""):
        return None
    if isinstance(raw, bool):
        raise InvalidRequest(f"invalid '{name}' parameter: must be an integer")
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except ValueError as exc:
        raise InvalidRequest(f"invalid '{name}' parameter: must be an integer") from exc


@dataclass(frozen=True)
class QueryRequest:
    """
    One page, filter and sort request.

    Attributes:
        page: 1-based page number.
        limit: Rows per page, bounded by the server maximum.
        search: Case-insensitive substring matched against ``username``;
            empty means no filter.
        class_filter: Exact class name; empty or None means no filter.
        min_score: Inclusive lower score bound; None means unbounded.
        max_score: Inclusive upper score bound; None means unbounded.
        sort: One of :data:`SORT_FIELDS`.
        order: ``"asc"`` or ``"desc"``.
    """

    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    search: str = ""
    class_filter: str | None = None
    min_score: int | None = None
    max_score: int | None = None
    sort: str = DEFAULT_SORT
    order: str = DEFAULT_ORDER

    @classmethod
    def from_params(
        cls, params: Mapping[str, Any], *, default_limit: int = DEFAULT_LIMIT
    ) -> QueryRequest:
        """Build a request from wire parameters, applying the defaults.

        Raises:
            InvalidRequest: If a numeric parameter is not an integer.
        """
        page = _parse_int("page", params.get("page"))
        limit = _parse_int("limit", params.get("limit"))
        sort = (params.get("sort") or "").strip() or DEFAULT_SORT
        order = (params.get("order") or "").strip().lower() or DEFAULT_ORDER
        return cls(
            page=DEFAULT_PAGE if page is None else page,
            limit=default_limit if limit is None else limit,
            search=params.get("search") or "",
            class_filter=(params.get("class") or "").strip() or None,
            min_score=_parse_int("minScore", params.get("minScore")),
            max_score=_parse_int("maxScore", params.get("maxScore")),
            sort=sort,
            order=order,
        )

    def validate(self, max_limit: int) -> QueryRequest:
        """Check bounds and enumerations; return ``self`` for chaining.

        Raises:
            InvalidRequest: On page < 1, limit outside [1, max_limit], or an
                unknown sort field or order.
        """
        if self.page < 1:
            raise InvalidRequest("invalid 'page' parameter: must be a positive integer")
        if self.limit < 1 or self.limit > max_limit:
            raise InvalidRequest(f"invalid 'limit' parameter: must be between 1 and {max_limit}")
        if self.sort not in SORT_FIELDS:
            allowed = ", ".join(SORT_FIELDS)
            raise InvalidRequest(f"invalid 'sort' parameter: must be one of {allowed}")
        if self.order not in ORDERS:
            raise InvalidRequest("invalid 'order' parameter: must be 'asc' or 'desc'")
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def sort_column(self) -> str:
        return SORT_FIELDS[self.sort]

    def to_params(self) -> dict[str, str | int]:
        """Render as query-string parameters, omitting absent filters."""
        params: dict[str, str | int] = {
            "page": self.page,
            "limit": self.limit,
            "sort": self.sort,
            "order": self.order,
        }
        if self.search:
            params["search"] = self.search
        if self.class_filter:
            params["class"] = self.class_filter
        if self.min_score is not None:
            params["minScore"] = self.min_score
        if self.max_score is not None:
            params["maxScore"] = self.max_score
        return params


@dataclass(frozen=True)
class DirectoryEntry:
    """One directory row."""

    id: int
    username: str
    rank: int
    class_name: str
    score: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "rank": self.rank,
            "class": self.class_name,
            "score": self.score,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DirectoryEntry:
        return cls(
            id=int(data["id"]),
            username=str(data["username"]),
            rank=int(data["rank"]),
            class_name=str(data["class"]),
            score=int(data["score"]),
        )


@dataclass(frozen=True)
class QueryResult:
    """
    One page of directory rows plus counts over the filtered set.

    ``total_pages`` is ``ceil(total / limit)``, so an empty filtered set has
    zero pages and every requested page of it is empty.
    """

    data: list[DirectoryEntry]
    total: int
    page: int
    limit: int
    total_pages: int = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "total_pages", math.ceil(self.total / self.limit))

    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous_page(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [entry.to_dict() for entry in self.data],
            "total": self.total,
            "totalPages": self.total_pages,
            "currentPage": self.page,
            "limit": self.limit,
            "hasNextPage": self.has_next_page,
            "hasPreviousPage": self.has_previous_page,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, limit: int) -> QueryResult:
        """Parse a wire payload; ``limit`` is the one the request asked for."""
        return cls(
            data=[DirectoryEntry.from_dict(row) for row in data["data"]],
            total=int(data["total"]),
            page=int(data["currentPage"]),
            limit=int(data.get("limit", limit)),
        )

