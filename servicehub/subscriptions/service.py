"""Subscription lifecycle for providers.

Subscriptions are created and edited by admins only. Providers may read their
own records. Expiry is lazy: ``apply_lazy_expiry`` runs immediately before
every write, so an ``Active`` subscription whose ``end_date`` has passed is
persisted as ``Expired`` the next time it is written, and reads report the
stored status unchanged.
"""

from datetime import datetime
from typing import Any, Mapping

from ..auth import Identity, check_roles
from ..clock import as_datetime, utc_now
from ..database import ACCOUNTS_TABLE, SUBSCRIPTIONS_TABLE, Store
from ..errors import ConflictError, Forbidden, NotFoundError
from ..logging_config import get_logger
from ..models import Role
from ..query import QueryResult, run_query
from .models import Subscription, SubscriptionCreate, SubscriptionStatus, SubscriptionUpdate

logger = get_logger("servicehub.subscriptions")

SEARCH_FIELDS = ("plan_name", "status")
FILTER_FIELDS = ("provider_id", "plan_name", "status")
SORT_FIELDS = ("created_at", "start_date", "end_date", "plan_name", "status", "amount")


def apply_lazy_expiry(record: dict, now: datetime | None = None) -> dict:
    """Force ``Active`` to ``Expired`` once ``end_date`` is not in the future.

    Returns a new dict; the input is not modified.
    """
    end_date = as_datetime(record.get("end_date"))
    status = record.get("status")
    if isinstance(status, SubscriptionStatus):
        status = status.value
    if end_date is not None and status == SubscriptionStatus.active.value and end_date <= (now or utc_now()):
        return {**record, "status": SubscriptionStatus.expired.value}
    return dict(record)


class SubscriptionService:
    """Subscription operations over a record store."""

    def __init__(self, db: Store):
        self.db = db

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _get_row(self, subscription_id: str) -> dict:
        row = self.db.get(SUBSCRIPTIONS_TABLE, subscription_id)
        if not row:
            raise NotFoundError("Subscription not found")
        return row

    def _get_provider(self, provider_id: str) -> dict | None:
        return self.db.find_one(ACCOUNTS_TABLE, {"id": provider_id, "role": Role.provider.value})

    def _view(self, row: dict) -> dict:
        provider = self._get_provider(row["provider_id"])
        summary = {k: provider[k] for k in ("id", "name", "email")} if provider else None
        return Subscription.model_validate({**row, "provider": summary}).model_dump(mode="json")

    def _write(self, subscription_id: str, current: dict, changes: dict) -> dict:
        """Merge, apply the expiry guard, then persist with a status check."""
        merged = apply_lazy_expiry({**current, **changes})
        if "status" in changes or merged["status"] != current["status"]:
            changes = {**changes, "status": merged["status"]}

        updated = self.db.update(
            SUBSCRIPTIONS_TABLE,
            subscription_id,
            changes,
            expected={"status": current["status"]},
        )
        if not updated:
            if not self.db.get(SUBSCRIPTIONS_TABLE, subscription_id):
                raise NotFoundError("Subscription not found")
            raise ConflictError("Subscription was modified concurrently, please retry")
        return updated

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def create(self, actor: Identity, request: SubscriptionCreate) -> dict:
        check_roles(actor, [Role.admin])
        if not self._get_provider(request.provider_id):
            raise NotFoundError("Provider not found")

        record = apply_lazy_expiry(
            {
                "provider_id": request.provider_id,
                "plan_name": request.plan_name.value,
                "start_date": as_datetime(request.start_date) or utc_now(),
                "end_date": as_datetime(request.end_date),
                "renewal_date": as_datetime(request.renewal_date),
                "status": SubscriptionStatus.active.value,
                "amount": request.amount,
            }
        )
        row = self.db.insert(SUBSCRIPTIONS_TABLE, record)
        logger.info(
            f"Subscription created | id={row['id']} | provider={row['provider_id']} "
            f"| plan={row['plan_name']} | status={row['status']}"
        )
        return self._view(row)

    def get(self, actor: Identity, subscription_id: str) -> dict:
        """Admins see any subscription; providers only their own."""
        check_roles(actor, [Role.admin, Role.provider])
        row = self._get_row(subscription_id)
        if actor.role is Role.provider and row["provider_id"] != actor.id:
            raise Forbidden("Access denied. You can only view your own subscription.")
        return self._view(row)

    def list_subscriptions(self, actor: Identity, params: Mapping[str, Any]) -> QueryResult:
        check_roles(actor, [Role.admin, Role.provider])
        default_filters = None
        if actor.role is Role.provider:
            # Ownership comes from the session, never from a parameter
            params = {k: v for k, v in params.items() if k != "provider_id"}
            default_filters = {"provider_id": actor.id}

        result = run_query(
            self.db,
            SUBSCRIPTIONS_TABLE,
            params,
            SEARCH_FIELDS,
            default_filters,
            filter_fields=FILTER_FIELDS,
            sort_fields=SORT_FIELDS,
        )
        result.data = [self._view(row) for row in result.data]
        return result

    def latest_for_provider(self, provider_id: str) -> dict | None:
        rows = self.db.find(SUBSCRIPTIONS_TABLE, {"provider_id": provider_id})
        return self._view(rows[0]) if rows else None

    def update(self, actor: Identity, subscription_id: str, request: SubscriptionUpdate) -> dict:
        check_roles(actor, [Role.admin])
        current = self._get_row(subscription_id)

        changes = request.model_dump(exclude_unset=True, exclude_none=True)
        for key in ("start_date", "end_date", "renewal_date"):
            if key in changes:
                changes[key] = as_datetime(changes[key])
        for key in ("plan_name", "status"):
            if key in changes:
                changes[key] = changes[key].value

        updated = self._write(subscription_id, current, changes)
        logger.info(
            f"Subscription updated | id={subscription_id} | by={actor.id} "
            f"| fields={sorted(changes)} | status={updated['status']}"
        )
        return self._view(updated)

    def cancel(self, actor: Identity, subscription_id: str) -> dict:
        check_roles(actor, [Role.admin])
        current = self._get_row(subscription_id)
        if current["status"] == SubscriptionStatus.cancelled.value:
            raise ConflictError("Subscription is already cancelled")

        updated = self._write(subscription_id, current, {"status": SubscriptionStatus.cancelled.value})
        logger.info(f"Subscription cancelled | id={subscription_id} | by={actor.id}")
        return self._view(updated)

    def delete(self, actor: Identity, subscription_id: str) -> None:
        check_roles(actor, [Role.admin])
        if not self.db.delete(SUBSCRIPTIONS_TABLE, subscription_id):
            raise NotFoundError("Subscription not found")
        logger.info(f"Subscription deleted | id={subscription_id} | by={actor.id}")
