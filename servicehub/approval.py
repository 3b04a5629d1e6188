"""Provider approval state machine.

A provider registers as ``pending`` and becomes ``approved`` when an admin
approves it. Rejection sets the flag back to false, so a rejected provider
is indistinguishable at rest from a pending one. Approval changes do not
revoke sessions that were already issued; approval-gated operations read the
fresh flag on every request instead.
"""

from enum import Enum

from .accounts import AccountService
from .auth import Identity, check_roles
from .database import ACCOUNTS_TABLE, Store
from .errors import ConflictError, NotFoundError
from .logging_config import get_logger
from .models import Role

logger = get_logger("servicehub.approval")


class ApprovalState(str, Enum):
    pending = "pending"
    approved = "approved"


def approval_state(provider: dict) -> ApprovalState:
    return ApprovalState.approved if provider.get("is_approved") else ApprovalState.pending


class ProviderApprovalService:
    """Admin-only transitions on provider accounts."""

    def __init__(self, db: Store):
        self.db = db

    def get_provider(self, provider_id: str) -> dict:
        provider = self.db.find_one(ACCOUNTS_TABLE, {"id": provider_id, "role": Role.provider.value})
        if not provider:
            raise NotFoundError("Provider not found")
        return provider

    def approve(self, actor: Identity, provider_id: str) -> dict:
        """pending -> approved. Approving twice is a conflict."""
        check_roles(actor, [Role.admin])
        provider = self.get_provider(provider_id)
        if provider.get("is_approved"):
            raise ConflictError("Provider is already approved")

        # Compare-and-swap so two admins racing cannot both "approve"
        updated = self.db.update(
            ACCOUNTS_TABLE,
            provider_id,
            {"is_approved": True},
            expected={"role": Role.provider.value, "is_approved": False},
        )
        if not updated:
            if self.db.get(ACCOUNTS_TABLE, provider_id) is None:
                raise NotFoundError("Provider not found")
            raise ConflictError("Provider is already approved")

        logger.info(f"Provider approved | id={provider_id} | by={actor.id}")
        return updated

    def reject(self, actor: Identity, provider_id: str, reason: str | None = None) -> dict:
        """any -> pending. Idempotent."""
        check_roles(actor, [Role.admin])
        self.get_provider(provider_id)
        updated = self.db.update(ACCOUNTS_TABLE, provider_id, {"is_approved": False})
        if not updated:
            raise NotFoundError("Provider not found")

        logger.info(f"Provider rejected | id={provider_id} | by={actor.id} | reason={(reason or '-')[:80]}")
        return updated

    def delete(self, actor: Identity, provider_id: str) -> dict:
        """Unconditional and irreversible. Applications, subscriptions and reviews go too."""
        check_roles(actor, [Role.admin])
        self.get_provider(provider_id)
        deleted = AccountService(self.db).delete_account(provider_id)
        logger.info(f"Provider deleted | id={provider_id} | by={actor.id}")
        return deleted
