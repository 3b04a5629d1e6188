"""Admin listings of accounts."""

from fastapi import APIRouter, Query, Request

from ..accounts import AccountService
from ..auth import AdminIdentity
from ..database import Database
from ..logging_config import get_logger
from ..models import ApiResponse, Role

logger = get_logger("servicehub.routes.admin")
router = APIRouter(prefix="/admin", tags=["admin"])

PROVIDER_SEARCH_FIELDS = ("name", "email", "skills", "address")
PROVIDER_FILTER_FIELDS = ("is_approved", "availability_status", "skills")
CUSTOMER_SEARCH_FIELDS = ("name", "email", "phone", "address")
CUSTOMER_FILTER_FIELDS = ("is_active",)


@router.get("/providers", response_model=ApiResponse)
async def list_providers(
    request: Request,
    admin: AdminIdentity,
    db: Database,
    pending: bool = Query(False, description="Only providers awaiting approval"),
):
    """All providers, or only the pending ones."""
    logger.info(f"GET /admin/providers | admin={admin.id} | pending={pending}")
    result = AccountService(db).list_accounts(
        Role.provider,
        dict(request.query_params),
        PROVIDER_SEARCH_FIELDS,
        {"is_approved": False} if pending else None,
        filter_fields=PROVIDER_FILTER_FIELDS,
    )
    return ApiResponse(data=result.data, pagination=result.pagination)


@router.get("/customers", response_model=ApiResponse)
async def list_customers(request: Request, admin: AdminIdentity, db: Database):
    logger.info(f"GET /admin/customers | admin={admin.id}")
    result = AccountService(db).list_accounts(
        Role.customer,
        dict(request.query_params),
        CUSTOMER_SEARCH_FIELDS,
        filter_fields=CUSTOMER_FILTER_FIELDS,
    )
    return ApiResponse(data=result.data, pagination=result.pagination)


@router.get("/admins", response_model=ApiResponse)
async def list_admins(request: Request, admin: AdminIdentity, db: Database):
    result = AccountService(db).list_accounts(Role.admin, dict(request.query_params), ("name", "email"), filter_fields=())
    return ApiResponse(data=result.data, pagination=result.pagination)
