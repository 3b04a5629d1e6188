"""Provider subscription lifecycle."""

from .models import (
    PlanName,
    ProviderSummary,
    Subscription,
    SubscriptionCreate,
    SubscriptionStatus,
    SubscriptionUpdate,
)
from .service import SubscriptionService, apply_lazy_expiry

__all__ = [
    # Enums
    "PlanName",
    "SubscriptionStatus",
    # Models
    "Subscription",
    "ProviderSummary",
    # API models
    "SubscriptionCreate",
    "SubscriptionUpdate",
    # Service
    "SubscriptionService",
    "apply_lazy_expiry",
]
