"""Provider routes: public directory, approval-gated self service, admin approval."""

from fastapi import APIRouter, Request

from ..accounts import AccountService
from ..approval import ProviderApprovalService, approval_state
from ..auth import AdminIdentity, ApprovedProvider
from ..database import Database
from ..errors import NotFoundError
from ..logging_config import get_logger
from ..models import AccountUpdate, ApiResponse, RejectRequest, Role, public_account
from ..reviews import ReviewService
from ..subscriptions import SubscriptionService

logger = get_logger("servicehub.routes.providers")
router = APIRouter(prefix="/providers", tags=["providers"])

DIRECTORY_SEARCH_FIELDS = ("name", "skills", "address")
DIRECTORY_FILTER_FIELDS = ("availability_status", "skills", "experience_years")


# =============================================================================
# Public directory
# =============================================================================


@router.get("", response_model=ApiResponse)
async def list_providers(request: Request, db: Database):
    """Approved providers, best rated first."""
    result = AccountService(db).list_accounts(
        Role.provider,
        dict(request.query_params),
        DIRECTORY_SEARCH_FIELDS,
        {"is_approved": True},
        filter_fields=DIRECTORY_FILTER_FIELDS,
        default_sort="-rating",
    )
    return ApiResponse(data=result.data, pagination=result.pagination)


# =============================================================================
# Approval-gated self service
# =============================================================================


@router.get("/me", response_model=ApiResponse)
async def get_my_profile(provider: ApprovedProvider, db: Database):
    return ApiResponse(data={"provider": AccountService(db).get_account(provider, provider.id)})


@router.put("/me", response_model=ApiResponse)
async def update_my_profile(update: AccountUpdate, provider: ApprovedProvider, db: Database):
    logger.info(f"PUT /providers/me | provider={provider.id}")
    updated = AccountService(db).update_account(provider, provider.id, update)
    return ApiResponse(message="Profile updated successfully", data={"provider": updated})


@router.get("/me/subscription", response_model=ApiResponse)
async def get_my_subscription(provider: ApprovedProvider, db: Database):
    """Most recent subscription of the calling provider."""
    subscription = SubscriptionService(db).latest_for_provider(provider.id)
    if not subscription:
        raise NotFoundError("No subscription found")
    return ApiResponse(data={"subscription": subscription})


@router.get("/me/reviews", response_model=ApiResponse)
async def get_my_reviews(request: Request, provider: ApprovedProvider, db: Database):
    result = ReviewService(db).list_reviews(dict(request.query_params), {"provider_id": provider.id})
    return ApiResponse(data=result.data, pagination=result.pagination)


# =============================================================================
# Public lookups
# =============================================================================


@router.get("/{provider_id}/approval-status", response_model=ApiResponse)
async def get_approval_status(provider_id: str, db: Database):
    provider = ProviderApprovalService(db).get_provider(provider_id)
    return ApiResponse(
        data={
            "id": provider["id"],
            "is_approved": bool(provider.get("is_approved")),
            "status": approval_state(provider).value,
        }
    )


@router.get("/{provider_id}", response_model=ApiResponse)
async def get_provider(provider_id: str, db: Database):
    provider = ProviderApprovalService(db).get_provider(provider_id)
    if not provider.get("is_approved"):
        raise NotFoundError("Provider not found")
    return ApiResponse(data={"provider": public_account(provider)})


# =============================================================================
# Admin approval
# =============================================================================


@router.put("/{provider_id}/approve", response_model=ApiResponse)
async def approve_provider(provider_id: str, admin: AdminIdentity, db: Database):
    logger.info(f"PUT /providers/{provider_id}/approve | admin={admin.id}")
    provider = ProviderApprovalService(db).approve(admin, provider_id)
    return ApiResponse(message="Provider approved successfully", data={"provider": public_account(provider)})


@router.put("/{provider_id}/reject", response_model=ApiResponse)
async def reject_provider(
    provider_id: str,
    admin: AdminIdentity,
    db: Database,
    body: RejectRequest | None = None,
):
    logger.info(f"PUT /providers/{provider_id}/reject | admin={admin.id}")
    reason = body.reason if body else None
    provider = ProviderApprovalService(db).reject(admin, provider_id, reason)
    return ApiResponse(
        message="Provider rejected",
        data={"provider": public_account(provider), "rejectionReason": reason},
    )


@router.delete("/{provider_id}", response_model=ApiResponse)
async def delete_provider(provider_id: str, admin: AdminIdentity, db: Database):
    logger.info(f"DELETE /providers/{provider_id} | admin={admin.id}")
    ProviderApprovalService(db).delete(admin, provider_id)
    return ApiResponse(message="Provider deleted successfully")
