"""Authentication routes: register, login, logout, me."""

from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status

from ..accounts import AccountService
from ..auth import CurrentIdentity, RevocationStore, create_access_token, token_expiry
from ..clock import utc_now
from ..config import Settings, get_settings
from ..database import Database
from ..errors import MarketplaceError
from ..logging_config import get_logger, log_auth_event
from ..models import ApiResponse, LoginRequest, RegisterRequest, Role, public_account
from ..rate_limit import limiter, login_limit, register_limit

logger = get_logger("servicehub.routes.auth")
router = APIRouter(tags=["auth"])


# =============================================================================
# Cookie-based Auth Helpers
# =============================================================================


def set_auth_cookie(response: Response, token: str, settings: Settings):
    """Set httpOnly auth cookie."""
    response.set_cookie(
        key=settings.auth_cookie_name,
        value=token,
        max_age=settings.jwt_expire_minutes * 60,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )


def clear_auth_cookie(response: Response, settings: Settings):
    """Clear the auth cookie (logout)."""
    response.delete_cookie(
        key=settings.auth_cookie_name,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
    )


# =============================================================================
# Routes
# =============================================================================


@router.post("/register", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(register_limit)
async def register(
    request: Request,
    response: Response,
    register_request: RegisterRequest,
    db: Database,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """
    Register a provider or customer.

    Customers are signed in immediately. Providers start pending approval and
    receive no token until an admin approves them.
    """
    logger.info(f"POST /register | role={register_request.role}")
    try:
        row = AccountService(db).register(register_request)
    except MarketplaceError as e:
        log_auth_event("register", None, False, e.message)
        raise

    log_auth_event("register", row["id"], True, f"role={row['role']}")
    user = public_account(row)

    if row["role"] == Role.provider.value:
        return ApiResponse(
            statusCode=status.HTTP_201_CREATED,
            message="Registration successful. Your account is pending admin approval.",
            data={"user": user},
        )

    token = create_access_token(row["id"], Role(row["role"]), settings)
    set_auth_cookie(response, token, settings)
    return ApiResponse(
        statusCode=status.HTTP_201_CREATED,
        message="Registration successful",
        data={"user": user, "token": token},
    )


@router.post("/login", response_model=ApiResponse)
@limiter.limit(login_limit)
async def login(
    request: Request,
    response: Response,
    login_request: LoginRequest,
    db: Database,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Exchange credentials for a session token. Also sets an httpOnly cookie."""
    logger.info(f"POST /login | role={login_request.role.value}")
    try:
        row = AccountService(db).authenticate(login_request.email, login_request.password, login_request.role)
    except MarketplaceError as e:
        log_auth_event("login", None, False, e.message)
        raise

    token = create_access_token(row["id"], login_request.role, settings)
    set_auth_cookie(response, token, settings)
    log_auth_event("login", row["id"], True)

    return ApiResponse(
        message="Login successful",
        data={"user": public_account(row), "token": token},
    )


@router.post("/logout", response_model=ApiResponse)
async def logout(
    request: Request,
    response: Response,
    identity: CurrentIdentity,
    db: Database,
    settings: Annotated[Settings, Depends(get_settings)],
):
    """Revoke the presented token until it would have expired, and clear the cookie."""
    token = request.state.token
    expires_at = token_expiry(token) or utc_now() + timedelta(minutes=settings.jwt_expire_minutes)

    revoked = RevocationStore(db).revoke(token, expires_at)
    clear_auth_cookie(response, settings)
    log_auth_event("logout", identity.id, True, None if revoked else "already revoked")

    return ApiResponse(message="Logout successful" if revoked else "Already logged out")


@router.get("/auth/me", response_model=ApiResponse)
async def me(identity: CurrentIdentity):
    """Identity context of the caller."""
    return ApiResponse(data={"user": identity.to_dict()})
