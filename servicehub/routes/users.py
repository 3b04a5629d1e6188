"""User profile routes. Admins are unrestricted; everyone else sees only themselves."""

from fastapi import APIRouter, status

from ..accounts import AccountService
from ..auth import AdminIdentity, CurrentIdentity
from ..database import Database
from ..logging_config import get_logger
from ..models import AccountUpdate, ApiResponse, CreateAccountRequest, public_account

logger = get_logger("servicehub.routes.users")
router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_user(request: CreateAccountRequest, admin: AdminIdentity, db: Database):
    """Create an account of any role, including other admins."""
    logger.info(f"POST /users | admin={admin.id} | role={request.role}")
    row = AccountService(db).create_account(request)
    return ApiResponse(
        statusCode=status.HTTP_201_CREATED,
        message="User created successfully",
        data={"user": public_account(row)},
    )


@router.get("/{user_id}", response_model=ApiResponse)
async def get_user(user_id: str, identity: CurrentIdentity, db: Database):
    return ApiResponse(data={"user": AccountService(db).get_account(identity, user_id)})


@router.put("/{user_id}", response_model=ApiResponse)
async def update_user(user_id: str, update: AccountUpdate, identity: CurrentIdentity, db: Database):
    logger.info(f"PUT /users/{user_id} | by={identity.id}")
    user = AccountService(db).update_account(identity, user_id, update)
    return ApiResponse(message="User updated successfully", data={"user": user})


@router.delete("/{user_id}", response_model=ApiResponse)
async def delete_user(user_id: str, admin: AdminIdentity, db: Database):
    logger.info(f"DELETE /users/{user_id} | admin={admin.id}")
    AccountService(db).delete_account(user_id)
    return ApiResponse(message="User deleted successfully")
