"""Pydantic models for provider subscriptions."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

# =============================================================================
# Enums
# =============================================================================


class PlanName(str, Enum):
    """Available subscription plans."""

    free = "Free"
    standard = "Standard"
    premium = "Premium"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle states.

    Active -> Expired happens lazily on the next write after ``end_date``.
    Active/Expired -> Cancelled is an admin action.
    """

    active = "Active"
    expired = "Expired"
    cancelled = "Cancelled"


# =============================================================================
# Domain Models
# =============================================================================


class ProviderSummary(BaseModel):
    id: str
    name: str
    email: str


class Subscription(BaseModel):
    """A provider's subscription record (mirrors the subscriptions table)."""

    id: str
    provider_id: str
    plan_name: PlanName = PlanName.free
    start_date: datetime
    end_date: datetime
    renewal_date: datetime | None = None
    status: SubscriptionStatus = SubscriptionStatus.active
    amount: float = Field(..., ge=0)
    provider: ProviderSummary | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# =============================================================================
# API Request Models
# =============================================================================


class SubscriptionCreate(BaseModel):
    """Admin request to create a subscription for a provider."""

    provider_id: str = Field(..., min_length=1)
    plan_name: PlanName
    end_date: datetime
    amount: float = Field(..., ge=0)
    start_date: datetime | None = None
    renewal_date: datetime | None = None


class SubscriptionUpdate(BaseModel):
    """Partial admin update. The owning provider cannot be changed."""

    plan_name: PlanName | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    renewal_date: datetime | None = None
    status: SubscriptionStatus | None = None
    amount: float | None = Field(None, ge=0)
