"""Generic list-query engine shared by every collection endpoint.

A raw query-parameter map is turned into a ``ListQuery``:

* ``search`` matches case-insensitively, as a substring, against *any* of the
  caller's searchable fields (OR),
* every other recognised parameter is an exact-match filter (AND),
* the caller's default filters (role scoping) are ANDed on top and can never
  be loosened by a parameter,
* ``page`` / ``limit`` give ``skip = (page - 1) * limit``,
* ``sort`` is a comma-separated field list, ``-`` prefix for descending,
  limited to the caller's sortable fields and defaulting to newest first.

The storage backend executes the ``ListQuery``; ``run_query`` wraps the page
with pagination metadata.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Mapping

from pydantic import BaseModel

if TYPE_CHECKING:
    from .database import Store

SEARCH_PARAM = "search"
PAGE_PARAM = "page"
LIMIT_PARAM = "limit"
SORT_PARAM = "sort"
RESERVED_PARAMS = frozenset({SEARCH_PARAM, PAGE_PARAM, LIMIT_PARAM, SORT_PARAM})

DEFAULT_SORT = "-created_at"
DEFAULT_LIMIT = 10
MAX_LIMIT = 100


@dataclass
class ListQuery:
    """Backend-neutral description of one page of a filtered collection."""

    filters: list[tuple[str, Any]] = field(default_factory=list)
    search: str | None = None
    search_fields: tuple[str, ...] = ()
    sort: list[tuple[str, bool]] = field(default_factory=list)  # (field, descending)
    skip: int = 0
    limit: int = DEFAULT_LIMIT

    @property
    def page(self) -> int:
        return self.skip // self.limit + 1


class Pagination(BaseModel):
    """Pagination metadata returned next to every list."""

    page: int
    limit: int
    total: int
    pages: int


@dataclass
class QueryResult:
    data: list[dict]
    pagination: Pagination


def _positive_int(raw: Any, default: int) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 1 else default


def coerce_value(raw: Any) -> Any:
    """Query strings carry booleans as text; everything else stays as given."""
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        return raw.strip()
    return raw


def _sort_keys(text: str | None, allowed: set[str] | None) -> list[tuple[str, bool]]:
    sort: list[tuple[str, bool]] = []
    for part in (text or "").split(","):
        part = part.strip()
        descending = part.startswith("-")
        name = part.lstrip("-+").strip()
        if name and (allowed is None or name in allowed):
            sort.append((name, descending))
    return sort


def parse_sort(
    raw: str | None,
    default: str = DEFAULT_SORT,
    allowed: Iterable[str] | None = None,
) -> list[tuple[str, bool]]:
    """Parse ``"-created_at,name"`` into ``[("created_at", True), ("name", False)]``.

    Keys outside ``allowed`` are dropped. When nothing usable is left the
    ``default`` ordering applies; it is trusted as given.
    """
    sort = _sort_keys(raw, set(allowed) if allowed is not None else None)
    return sort or _sort_keys(default, None)


def build_query(
    params: Mapping[str, Any],
    search_fields: Iterable[str],
    default_filters: Mapping[str, Any] | None = None,
    filter_fields: Iterable[str] | None = None,
    sort_fields: Iterable[str] | None = None,
    default_sort: str = DEFAULT_SORT,
    default_limit: int = DEFAULT_LIMIT,
    max_limit: int = MAX_LIMIT,
) -> ListQuery:
    """Combine raw parameters, searchable fields and default filters.

    ``filter_fields`` restricts which parameters are recognised as exact-match
    filters; when omitted every non-reserved parameter is one. Parameters with
    empty values are ignored. ``sort_fields`` likewise restricts the keys
    accepted in ``sort``.
    """
    allowed = set(filter_fields) if filter_fields is not None else None

    filters: list[tuple[str, Any]] = []
    for key, raw in params.items():
        if key in RESERVED_PARAMS or raw is None or raw == "":
            continue
        if allowed is not None and key not in allowed:
            continue
        filters.append((key, coerce_value(raw)))

    # Default filters are appended, not merged: a conflicting parameter
    # narrows the result to nothing instead of replacing the scope.
    for key, value in (default_filters or {}).items():
        filters.append((key, value))

    search = params.get(SEARCH_PARAM)
    search = search.strip() if isinstance(search, str) and search.strip() else None

    page = _positive_int(params.get(PAGE_PARAM), 1)
    limit = min(_positive_int(params.get(LIMIT_PARAM), default_limit), max_limit)

    return ListQuery(
        filters=filters,
        search=search,
        search_fields=tuple(search_fields),
        sort=parse_sort(params.get(SORT_PARAM), default_sort, sort_fields),
        skip=(page - 1) * limit,
        limit=limit,
    )


def paginate(query: ListQuery, total: int) -> Pagination:
    return Pagination(
        page=query.page,
        limit=query.limit,
        total=total,
        pages=math.ceil(total / query.limit) if total else 0,
    )


def run_query(
    store: "Store",
    table: str,
    params: Mapping[str, Any],
    search_fields: Iterable[str],
    default_filters: Mapping[str, Any] | None = None,
    **options: Any,
) -> QueryResult:
    """Build the query, execute it against ``table`` and attach pagination."""
    query = build_query(params, search_fields, default_filters, **options)
    rows, total = store.query(table, query)
    return QueryResult(data=rows, pagination=paginate(query, total))
