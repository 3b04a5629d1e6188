"""Service catalog and price lists.

Public reads, admin writes. Anonymous and non-admin callers only ever see
active records; an authenticated admin sees everything.
"""

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, Field, field_validator

from .auth import Identity, check_roles
from .database import ACCOUNTS_TABLE, JOB_POSTS_TABLE, PRICE_LISTS_TABLE, SERVICES_TABLE, Store
from .errors import ConflictError, NotFoundError, ValidationError
from .logging_config import get_logger
from .models import Role, public_account
from .query import QueryResult, run_query

logger = get_logger("servicehub.catalog")


# =============================================================================
# Enums
# =============================================================================


class Category(str, Enum):
    cleaning = "Cleaning"
    plumbing = "Plumbing"
    electrical = "Electrical"
    painting = "Painting"
    carpentry = "Carpentry"
    gardening = "Gardening"
    moving = "Moving"
    handyman = "Handyman"
    other = "Other"


class Unit(str, Enum):
    hour = "hour"
    day = "day"
    project = "project"
    item = "item"
    square_feet = "1 square feet"


class PriceType(str, Enum):
    fixed = "fixed"
    per_unit = "per_unit"
    range = "range"


# Fields that carry a price for each price type
PRICE_FIELDS: dict[PriceType, tuple[str, ...]] = {
    PriceType.fixed: ("fixed_price",),
    PriceType.per_unit: ("unit_price",),
    PriceType.range: ("min_price", "max_price"),
}
ALL_PRICE_FIELDS = ("fixed_price", "unit_price", "min_price", "max_price")

PROVIDER_SORT_FIELDS = ("rating", "name", "experience_years", "created_at")


# =============================================================================
# Request Models
# =============================================================================


class ServiceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    description: str = Field(..., min_length=1)
    category: Category
    base_price: float = Field(..., ge=0)
    unit: Unit = Unit.hour
    icon: str | None = None
    is_active: bool = True

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v: Any) -> Any:
        # Names are unique case-insensitively; length is checked after stripping
        return v.strip().lower() if isinstance(v, str) else v


class ServiceUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=120)
    description: str | None = Field(None, min_length=1)
    category: Category | None = None
    base_price: float | None = Field(None, ge=0)
    unit: Unit | None = None
    icon: str | None = None
    is_active: bool | None = None

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v


class PriceListCreate(BaseModel):
    service_id: str = Field(..., min_length=1)
    price_type: PriceType
    fixed_price: float | None = Field(None, ge=0)
    unit_price: float | None = Field(None, ge=0)
    min_price: float | None = Field(None, ge=0)
    max_price: float | None = Field(None, ge=0)
    unit: Unit = Unit.hour
    description: str | None = None
    is_active: bool = True


class PriceListUpdate(BaseModel):
    service_id: str | None = Field(None, min_length=1)
    price_type: PriceType | None = None
    fixed_price: float | None = Field(None, ge=0)
    unit_price: float | None = Field(None, ge=0)
    min_price: float | None = Field(None, ge=0)
    max_price: float | None = Field(None, ge=0)
    unit: Unit | None = None
    description: str | None = None
    is_active: bool | None = None


def validate_price_fields(record: dict) -> dict:
    """Check the price fields required by ``price_type`` and clear the others."""
    price_type = PriceType(record["price_type"])
    for name in PRICE_FIELDS[price_type]:
        if record.get(name) is None:
            label = name.replace("_", " ").capitalize()
            raise ValidationError.for_field(name, f"{label} is required for {price_type.value} price type")

    if price_type is PriceType.range and record["min_price"] > record["max_price"]:
        raise ValidationError.for_field("min_price", "Min price cannot be greater than max price")

    cleaned = dict(record)
    for name in ALL_PRICE_FIELDS:
        if name not in PRICE_FIELDS[price_type]:
            cleaned[name] = None
    return cleaned


def _visibility_filter(identity: Identity | None) -> dict | None:
    if identity is not None and identity.is_admin:
        return None
    return {"is_active": True}


# =============================================================================
# Services
# =============================================================================


class ServiceCatalog:
    """Catalog of bookable services."""

    SEARCH_FIELDS = ("name", "description", "category")
    FILTER_FIELDS = ("category", "unit", "is_active", "name")
    SORT_FIELDS = ("name", "category", "base_price", "created_at", "updated_at")

    def __init__(self, db: Store):
        self.db = db

    def _ensure_name_free(self, name: str, exclude_id: str | None = None) -> None:
        existing = self.db.find_one(SERVICES_TABLE, {"name": name})
        if existing and existing["id"] != exclude_id:
            raise ConflictError(
                "Service with this name already exists",
                errors=[{"field": "name", "message": "already exists"}],
            )

    def get_row(self, service_id: str) -> dict:
        row = self.db.get(SERVICES_TABLE, service_id)
        if not row:
            raise NotFoundError("Service not found")
        return row

    def get(self, identity: Identity | None, service_id: str) -> dict:
        row = self.get_row(service_id)
        if not row.get("is_active", True) and not (identity and identity.is_admin):
            raise NotFoundError("Service not found")
        return row

    def list_services(self, identity: Identity | None, params: Mapping[str, Any]) -> QueryResult:
        return run_query(
            self.db,
            SERVICES_TABLE,
            params,
            self.SEARCH_FIELDS,
            _visibility_filter(identity),
            filter_fields=self.FILTER_FIELDS,
            sort_fields=self.SORT_FIELDS,
            default_sort="category,name",
        )

    def providers_for_service(
        self, identity: Identity | None, service_id: str, params: Mapping[str, Any]
    ) -> tuple[dict, QueryResult]:
        """Approved providers with a skill naming the service, best rated first.

        The skill match is the case-insensitive substring search of the query
        engine, with the service name as the term. Only paging and sorting
        parameters are taken from the caller.
        """
        service = self.get(identity, service_id)
        result = run_query(
            self.db,
            ACCOUNTS_TABLE,
            {**params, "search": service["name"]},
            ("skills",),
            {"role": Role.provider.value, "is_approved": True},
            filter_fields=(),
            sort_fields=PROVIDER_SORT_FIELDS,
            default_sort="-rating,-created_at",
        )
        result.data = [public_account(row) for row in result.data]
        summary = {k: service.get(k) for k in ("id", "name", "description", "category", "base_price")}
        return summary, result

    def categories(self) -> list[str]:
        """Categories that have at least one active service, in enum order."""
        used = {row["category"] for row in self.db.find(SERVICES_TABLE, {"is_active": True})}
        return [c.value for c in Category if c.value in used]

    def create(self, actor: Identity, request: ServiceCreate) -> dict:
        check_roles(actor, [Role.admin])
        self._ensure_name_free(request.name)
        row = self.db.insert(SERVICES_TABLE, request.model_dump(mode="json"))
        logger.info(f"Service created | id={row['id']} | name={row['name']}")
        return row

    def update(self, actor: Identity, service_id: str, request: ServiceUpdate) -> dict:
        check_roles(actor, [Role.admin])
        row = self.get_row(service_id)
        changes = request.model_dump(mode="json", exclude_unset=True, exclude_none=True)
        if "name" in changes:
            self._ensure_name_free(changes["name"], exclude_id=service_id)
        if not changes:
            return row

        updated = self.db.update(SERVICES_TABLE, service_id, changes)
        if not updated:
            raise NotFoundError("Service not found")
        logger.info(f"Service updated | id={service_id} | fields={sorted(changes)}")
        return updated

    def delete(self, actor: Identity, service_id: str) -> None:
        """Delete a service and its price lists. Services still named by job posts stay."""
        check_roles(actor, [Role.admin])
        self.get_row(service_id)
        if self.db.find_one(JOB_POSTS_TABLE, {"service_id": service_id}):
            raise ConflictError("Service is referenced by existing job posts")

        price_lists = self.db.delete_where(PRICE_LISTS_TABLE, {"service_id": service_id})
        if not self.db.delete(SERVICES_TABLE, service_id):
            raise NotFoundError("Service not found")
        logger.info(f"Service deleted | id={service_id} | price_lists={price_lists}")


# =============================================================================
# Price lists
# =============================================================================


class PriceListCatalog:
    """Price lists attached to services."""

    SEARCH_FIELDS = ("description",)
    FILTER_FIELDS = ("service_id", "price_type", "unit", "is_active")
    SORT_FIELDS = ("created_at", "updated_at", "price_type", "fixed_price", "unit_price", "min_price", "max_price")

    def __init__(self, db: Store):
        self.db = db

    def _service_summary(self, service_id: str) -> dict | None:
        service = self.db.get(SERVICES_TABLE, service_id)
        if not service:
            return None
        return {k: service.get(k) for k in ("id", "name", "category", "description")}

    def _view(self, row: dict) -> dict:
        return {**row, "service": self._service_summary(row["service_id"])}

    def _ensure_service(self, service_id: str) -> None:
        if not self.db.get(SERVICES_TABLE, service_id):
            raise NotFoundError("Service not found")

    def get(self, identity: Identity | None, price_list_id: str) -> dict:
        row = self.db.get(PRICE_LISTS_TABLE, price_list_id)
        if not row or (not row.get("is_active", True) and not (identity and identity.is_admin)):
            raise NotFoundError("Price list not found")
        return self._view(row)

    def list_price_lists(self, identity: Identity | None, params: Mapping[str, Any]) -> QueryResult:
        result = run_query(
            self.db,
            PRICE_LISTS_TABLE,
            params,
            self.SEARCH_FIELDS,
            _visibility_filter(identity),
            filter_fields=self.FILTER_FIELDS,
            sort_fields=self.SORT_FIELDS,
        )
        result.data = [self._view(row) for row in result.data]
        return result

    def for_service(self, service_id: str) -> dict:
        service = self._service_summary(service_id)
        if not service:
            raise NotFoundError("Service not found")
        rows = self.db.find(PRICE_LISTS_TABLE, {"service_id": service_id, "is_active": True})
        return {"service": service, "price_lists": rows}

    def create(self, actor: Identity, request: PriceListCreate) -> dict:
        check_roles(actor, [Role.admin])
        self._ensure_service(request.service_id)
        record = validate_price_fields(request.model_dump(mode="json"))
        row = self.db.insert(PRICE_LISTS_TABLE, record)
        logger.info(f"Price list created | id={row['id']} | service={row['service_id']} | type={row['price_type']}")
        return self._view(row)

    def update(self, actor: Identity, price_list_id: str, request: PriceListUpdate) -> dict:
        check_roles(actor, [Role.admin])
        row = self.db.get(PRICE_LISTS_TABLE, price_list_id)
        if not row:
            raise NotFoundError("Price list not found")

        changes = request.model_dump(mode="json", exclude_unset=True, exclude_none=True)
        if "service_id" in changes:
            self._ensure_service(changes["service_id"])

        merged = validate_price_fields({**row, **changes})
        changes = {k: v for k, v in merged.items() if k in changes or k in ALL_PRICE_FIELDS}

        updated = self.db.update(PRICE_LISTS_TABLE, price_list_id, changes)
        if not updated:
            raise NotFoundError("Price list not found")
        logger.info(f"Price list updated | id={price_list_id} | fields={sorted(changes)}")
        return self._view(updated)

    def delete(self, actor: Identity, price_list_id: str) -> None:
        check_roles(actor, [Role.admin])
        if not self.db.delete(PRICE_LISTS_TABLE, price_list_id):
            raise NotFoundError("Price list not found")
        logger.info(f"Price list deleted | id={price_list_id}")
