"""Reviews between customers and providers."""

from datetime import datetime
from typing import Any, Mapping

from pydantic import BaseModel, Field

from .auth import Identity, check_roles
from .clock import utc_now
from .database import ACCOUNTS_TABLE, REVIEWS_TABLE, Store
from .errors import Forbidden, NotFoundError, ValidationError
from .logging_config import get_logger
from .models import Role
from .query import QueryResult, run_query

logger = get_logger("servicehub.reviews")

SEARCH_FIELDS = ("comment",)
FILTER_FIELDS = ("provider_id", "customer_id", "rating")
SORT_FIELDS = ("created_at", "review_date", "rating")


class ReviewCreate(BaseModel):
    """The caller's own side is taken from the session; the other side must be named."""

    provider_id: str | None = None
    customer_id: str | None = None
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., min_length=1)


class ReviewUpdate(BaseModel):
    rating: int | None = Field(None, ge=1, le=5)
    comment: str | None = Field(None, min_length=1)


class Review(BaseModel):
    id: str
    customer_id: str
    provider_id: str
    rating: int
    comment: str
    review_date: datetime
    customer: dict | None = None
    provider: dict | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ReviewService:
    def __init__(self, db: Store):
        self.db = db

    def _account(self, account_id: str, role: Role) -> dict | None:
        return self.db.find_one(ACCOUNTS_TABLE, {"id": account_id, "role": role.value})

    def _view(self, row: dict) -> dict:
        customer = self._account(row["customer_id"], Role.customer)
        provider = self._account(row["provider_id"], Role.provider)
        return Review.model_validate(
            {
                **row,
                "customer": {"id": customer["id"], "name": customer["name"]} if customer else None,
                "provider": {"id": provider["id"], "name": provider["name"], "skills": provider.get("skills")}
                if provider
                else None,
            }
        ).model_dump(mode="json")

    def _get_row(self, review_id: str) -> dict:
        row = self.db.get(REVIEWS_TABLE, review_id)
        if not row:
            raise NotFoundError("Review not found")
        return row

    def _ensure_author(self, actor: Identity, row: dict, action: str) -> None:
        if actor.is_admin:
            return
        own_field = "customer_id" if actor.role is Role.customer else "provider_id"
        if row[own_field] != actor.id:
            raise Forbidden(f"You can only {action} your own reviews")

    def get(self, review_id: str) -> dict:
        return self._view(self._get_row(review_id))

    def list_reviews(self, params: Mapping[str, Any], default_filters: Mapping[str, Any] | None = None) -> QueryResult:
        result = run_query(
            self.db,
            REVIEWS_TABLE,
            params,
            SEARCH_FIELDS,
            default_filters,
            filter_fields=FILTER_FIELDS,
            sort_fields=SORT_FIELDS,
            default_sort="-review_date",
        )
        result.data = [self._view(row) for row in result.data]
        return result

    def create(self, actor: Identity, request: ReviewCreate) -> dict:
        check_roles(actor, [Role.customer, Role.provider])
        if actor.role is Role.customer:
            customer_id, provider_id = actor.id, request.provider_id
            if not provider_id:
                raise ValidationError.for_field("provider_id", "Provider ID is required")
        else:
            customer_id, provider_id = request.customer_id, actor.id
            if not customer_id:
                raise ValidationError.for_field("customer_id", "Customer ID is required")

        if not self._account(provider_id, Role.provider):
            raise NotFoundError("Provider not found")
        if not self._account(customer_id, Role.customer):
            raise NotFoundError("Customer not found")

        row = self.db.insert(
            REVIEWS_TABLE,
            {
                "customer_id": customer_id,
                "provider_id": provider_id,
                "rating": request.rating,
                "comment": request.comment,
                "review_date": utc_now(),
            },
        )
        logger.info(f"Review created | id={row['id']} | by={actor.id} | rating={row['rating']}")
        return self._view(row)

    def update(self, actor: Identity, review_id: str, request: ReviewUpdate) -> dict:
        row = self._get_row(review_id)
        self._ensure_author(actor, row, "update")

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return self._view(row)
        updated = self.db.update(REVIEWS_TABLE, review_id, changes)
        if not updated:
            raise NotFoundError("Review not found")
        logger.info(f"Review updated | id={review_id} | by={actor.id}")
        return self._view(updated)

    def delete(self, actor: Identity, review_id: str) -> None:
        row = self._get_row(review_id)
        self._ensure_author(actor, row, "delete")
        self.db.delete(REVIEWS_TABLE, review_id)
        logger.info(f"Review deleted | id={review_id} | by={actor.id}")
