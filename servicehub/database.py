"""Storage backends for the ServiceHub backend.

Record storage is an external collaborator: a durable keyed store with
create / find / update / delete by identifier and by field-equality filter.
``Store`` is the protocol the services rely on. ``InMemoryStore`` backs tests
and local development; ``SupabaseStore`` talks to Postgres through PostgREST.

Both backends honour the same unique indexes (see ``UNIQUE_INDEXES`` and
``migrations/001_initial_schema.sql``) and support compare-and-swap updates,
so check-then-act sequences can be made atomic by the caller.
"""

import copy
import re
import threading
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Protocol

from fastapi import Depends
from postgrest.exceptions import APIError
from supabase import Client, create_client

from .config import Settings, get_settings
from .errors import DuplicateKeyError, ForeignKeyError, InvalidIdentifierError, StoreError
from .logging_config import get_logger
from .query import ListQuery

logger = get_logger("servicehub.database")

# =============================================================================
# Table Names (keep in sync with SQL migrations)
# =============================================================================

ACCOUNTS_TABLE = "accounts"
SERVICES_TABLE = "services"
PRICE_LISTS_TABLE = "price_lists"
JOB_POSTS_TABLE = "job_posts"
JOB_APPLICATIONS_TABLE = "job_applications"
SUBSCRIPTIONS_TABLE = "subscriptions"
REVIEWS_TABLE = "reviews"
TOKEN_BLACKLIST_TABLE = "token_blacklist"

UNIQUE_INDEXES: dict[str, list[tuple[str, ...]]] = {
    # Email namespaces are per account kind, not global
    ACCOUNTS_TABLE: [("role", "email")],
    SERVICES_TABLE: [("name",)],
    JOB_APPLICATIONS_TABLE: [("job_post_id", "provider_id")],
    TOKEN_BLACKLIST_TABLE: [("token_hash",)],
}

# Postgres array columns, each with the lower-cased text column the schema
# keeps in sync for substring search
ARRAY_COLUMNS: dict[str, dict[str, str]] = {
    ACCOUNTS_TABLE: {"skills": "skills_search"},
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Store(Protocol):
    """Protocol for record persistence backends."""

    def insert(self, table: str, data: dict) -> dict:
        """Insert a record, assigning ``id`` and timestamps. Returns the stored record."""
        ...

    def get(self, table: str, record_id: str) -> dict | None:
        """Get a record by ID."""
        ...

    def find_one(self, table: str, filters: dict[str, Any]) -> dict | None:
        """First record whose fields equal ``filters``."""
        ...

    def find(self, table: str, filters: dict[str, Any] | None = None) -> list[dict]:
        """All records whose fields equal ``filters``, newest first."""
        ...

    def query(self, table: str, query: ListQuery) -> tuple[list[dict], int]:
        """Execute a list query. Returns (page of rows, total matching)."""
        ...

    def update(
        self,
        table: str,
        record_id: str,
        changes: dict,
        expected: dict[str, Any] | None = None,
    ) -> dict | None:
        """Update a record.

        With ``expected``, the update only applies if every listed field still
        has the given value (compare-and-swap). Returns the updated record or
        None when nothing matched.
        """
        ...

    def delete(self, table: str, record_id: str) -> dict | None:
        """Delete a record by ID. Returns the deleted record, if any."""
        ...

    def delete_where(self, table: str, filters: dict[str, Any]) -> int:
        """Delete every record matching ``filters``. Returns the count."""
        ...


# =============================================================================
# In-memory backend
# =============================================================================


def _values_match(actual: Any, wanted: Any) -> bool:
    if isinstance(actual, Enum):
        actual = actual.value
    if isinstance(wanted, Enum):
        wanted = wanted.value
    if isinstance(actual, list):
        return any(_values_match(item, wanted) for item in actual)
    if actual == wanted:
        return True
    # Query-string values arrive as text
    if isinstance(wanted, str) and not isinstance(actual, (str, bool)) and actual is not None:
        return str(actual) == wanted
    return False


def _contains(actual: Any, term: str) -> bool:
    if actual is None:
        return False
    if isinstance(actual, list):
        return any(_contains(item, term) for item in actual)
    if isinstance(actual, Enum):
        actual = actual.value
    return term in str(actual).lower()


class InMemoryStore:
    """In-memory record storage for testing and local development."""

    def __init__(self, unique_indexes: dict[str, list[tuple[str, ...]]] | None = None):
        self._tables: dict[str, dict[str, dict]] = {}
        self._unique = UNIQUE_INDEXES if unique_indexes is None else unique_indexes
        # One lock for the whole store: every check-then-write below is atomic
        self._lock = threading.RLock()

    def _table(self, table: str) -> dict[str, dict]:
        return self._tables.setdefault(table, {})

    def _matches(self, row: dict, filters: dict[str, Any] | list[tuple[str, Any]] | None) -> bool:
        if not filters:
            return True
        items = filters.items() if isinstance(filters, dict) else filters
        return all(_values_match(row.get(key), value) for key, value in items)

    def _check_unique(self, table: str, row: dict) -> None:
        for index in self._unique.get(table, []):
            key = tuple(row.get(f) for f in index)
            if any(v is None for v in key):
                continue
            for other in self._table(table).values():
                if other["id"] != row["id"] and tuple(other.get(f) for f in index) == key:
                    raise DuplicateKeyError(table, index)

    def insert(self, table: str, data: dict) -> dict:
        now = _utc_now()
        row = copy.deepcopy(data)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", now)
        row.setdefault("updated_at", now)
        with self._lock:
            if row["id"] in self._table(table):
                raise DuplicateKeyError(table, ("id",))
            self._check_unique(table, row)
            self._table(table)[row["id"]] = row
            return copy.deepcopy(row)

    def get(self, table: str, record_id: str) -> dict | None:
        with self._lock:
            row = self._table(table).get(record_id)
            return copy.deepcopy(row) if row else None

    def find_one(self, table: str, filters: dict[str, Any]) -> dict | None:
        rows = self.find(table, filters)
        return rows[0] if rows else None

    def find(self, table: str, filters: dict[str, Any] | None = None) -> list[dict]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._table(table).values() if self._matches(r, filters)]
        rows.sort(key=lambda r: r.get("created_at") or _utc_now(), reverse=True)
        return rows

    def query(self, table: str, query: ListQuery) -> tuple[list[dict], int]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._table(table).values() if self._matches(r, query.filters)]

        if query.search and query.search_fields:
            term = query.search.lower()
            rows = [r for r in rows if any(_contains(r.get(f), term) for f in query.search_fields)]

        # Stable multi-key sort: apply the least significant key first
        for name, descending in reversed(query.sort):
            rows.sort(key=lambda r: (r.get(name) is None, r.get(name)), reverse=descending)

        total = len(rows)
        return rows[query.skip : query.skip + query.limit], total

    def update(
        self,
        table: str,
        record_id: str,
        changes: dict,
        expected: dict[str, Any] | None = None,
    ) -> dict | None:
        with self._lock:
            current = self._table(table).get(record_id)
            if current is None or not self._matches(current, expected):
                return None
            row = {**current, **copy.deepcopy(changes), "id": record_id, "updated_at": _utc_now()}
            self._check_unique(table, row)
            self._table(table)[record_id] = row
            return copy.deepcopy(row)

    def delete(self, table: str, record_id: str) -> dict | None:
        with self._lock:
            row = self._table(table).pop(record_id, None)
            return copy.deepcopy(row) if row else None

    def delete_where(self, table: str, filters: dict[str, Any]) -> int:
        with self._lock:
            doomed = [rid for rid, r in self._table(table).items() if self._matches(r, filters)]
            for rid in doomed:
                del self._table(table)[rid]
            return len(doomed)


# =============================================================================
# Supabase backend
# =============================================================================

_DUPLICATE_DETAIL = re.compile(r"Key \((?P<fields>[^)]+)\)=")
_SEARCH_UNSAFE = re.compile(r"[,()*%\\]")


def _array_element(value: Any) -> str:
    """Quote a value as one element of a Postgres array literal."""
    text = str(_to_json(value)).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{text}"'


def _to_json(value: Any) -> Any:
    """Convert Python values into what PostgREST accepts."""
    if isinstance(value, dict):
        return {k: _to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    return value


class SupabaseStore:
    """Store backed by Supabase (PostgREST).

    Unique indexes and ``ON DELETE`` behaviour live in the SQL schema.
    """

    def __init__(self, client: Client):
        self.client = client

    def _execute(self, table: str, builder):
        try:
            return builder.execute()
        except APIError as e:
            if e.code == "23505":
                match = _DUPLICATE_DETAIL.search(e.details or "")
                fields = tuple(f.strip() for f in match.group("fields").split(",")) if match else ()
                raise DuplicateKeyError(table, fields) from e
            if e.code == "23503":
                raise ForeignKeyError(table, e.details or e.message or "") from e
            if e.code == "22P02":
                raise InvalidIdentifierError(e.message) from e
            logger.error(f"Supabase error on {table}: {e.code} {e.message}")
            raise StoreError(f"{table}: {e.message}") from e

    def _eq(self, table: str, builder, filters: dict[str, Any] | list[tuple[str, Any]] | None):
        arrays = ARRAY_COLUMNS.get(table, {})
        items = filters.items() if isinstance(filters, dict) else (filters or [])
        for key, value in items:
            if key in arrays:
                # Element membership, as the in-memory store matches lists
                builder = builder.contains(key, [_array_element(value)])
            else:
                builder = builder.eq(key, _to_json(value))
        return builder

    def insert(self, table: str, data: dict) -> dict:
        row = dict(data)
        row.setdefault("id", str(uuid.uuid4()))
        result = self._execute(table, self.client.table(table).insert(_to_json(row)))
        if not result.data:
            raise StoreError(f"Insert into {table} returned no row")
        return result.data[0]

    def get(self, table: str, record_id: str) -> dict | None:
        result = self._execute(table, self.client.table(table).select("*").eq("id", record_id).limit(1))
        return result.data[0] if result.data else None

    def find_one(self, table: str, filters: dict[str, Any]) -> dict | None:
        builder = self._eq(table, self.client.table(table).select("*"), filters)
        result = self._execute(table, builder.limit(1))
        return result.data[0] if result.data else None

    def find(self, table: str, filters: dict[str, Any] | None = None) -> list[dict]:
        builder = self._eq(table, self.client.table(table).select("*"), filters)
        result = self._execute(table, builder.order("created_at", desc=True))
        return result.data or []

    def query(self, table: str, query: ListQuery) -> tuple[list[dict], int]:
        builder = self._eq(table, self.client.table(table).select("*", count="exact"), query.filters)

        if query.search and query.search_fields:
            term = _SEARCH_UNSAFE.sub("", query.search)
            if term:
                arrays = ARRAY_COLUMNS.get(table, {})
                columns = [arrays.get(f, f) for f in query.search_fields]
                builder = builder.or_(",".join(f"{c}.ilike.%{term}%" for c in columns))

        for name, descending in query.sort:
            builder = builder.order(name, desc=descending)

        builder = builder.range(query.skip, query.skip + query.limit - 1)
        result = self._execute(table, builder)
        return result.data or [], result.count or 0

    def update(
        self,
        table: str,
        record_id: str,
        changes: dict,
        expected: dict[str, Any] | None = None,
    ) -> dict | None:
        payload = _to_json({**changes, "updated_at": _utc_now()})
        builder = self._eq(table, self.client.table(table).update(payload).eq("id", record_id), expected)
        result = self._execute(table, builder)
        return result.data[0] if result.data else None

    def delete(self, table: str, record_id: str) -> dict | None:
        result = self._execute(table, self.client.table(table).delete().eq("id", record_id))
        return result.data[0] if result.data else None

    def delete_where(self, table: str, filters: dict[str, Any]) -> int:
        if not filters:
            raise ValueError("delete_where requires at least one filter")
        builder = self._eq(table, self.client.table(table).delete(), filters)
        result = self._execute(table, builder)
        return len(result.data or [])


# =============================================================================
# Dependency
# =============================================================================

_store: Store | None = None


def get_store(settings: Settings | None = None) -> Store:
    """Get the process-wide store, creating it on first use."""
    global _store
    if _store is None:
        if settings is None:
            settings = get_settings()
        if settings.storage_backend == "supabase":
            if not settings.supabase_url or not settings.supabase_secret_key:
                raise ValueError("SUPABASE_URL and SUPABASE_SECRET_KEY must be set for the supabase backend")
            _store = SupabaseStore(create_client(settings.supabase_url, settings.supabase_secret_key))
        else:
            _store = InMemoryStore()
        logger.info(f"Storage backend: {settings.storage_backend}")
    return _store


def get_db(settings: Annotated[Settings, Depends(get_settings)]) -> Store:
    """FastAPI dependency for the record store."""
    return get_store(settings)


# Type alias for dependency injection
Database = Annotated[Store, Depends(get_db)]
