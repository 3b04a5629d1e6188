"""Session tokens, revocation and the access-control guard.

Every protected request resolves its credential in a fixed order:

1. take the token from the auth cookie, falling back to the ``Authorization``
   header (first present wins), otherwise ``Unauthenticated``;
2. reject revoked tokens (``TokenRevoked``);
3. verify signature and expiry (``InvalidCredential`` / ``CredentialExpired``);
4. load the account named by the token's ``sub`` and ``role`` claims in one
   lookup (``IdentityNotFound`` if it was deleted).

Role and approval predicates then run as separate dependency stages.
"""

import hashlib
from datetime import datetime, timedelta, timezone
from typing import Annotated, Iterable

import bcrypt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt

from .clock import as_datetime, utc_now
from .config import Settings, get_settings
from .database import ACCOUNTS_TABLE, TOKEN_BLACKLIST_TABLE, Database, Store
from .errors import (
    AuthenticationError,
    CredentialExpired,
    DuplicateKeyError,
    Forbidden,
    IdentityNotFound,
    InvalidCredential,
    TokenRevoked,
    Unauthenticated,
)
from .logging_config import get_logger
from .models import Role

logger = get_logger("servicehub.auth")

# Bearer token scheme
# Make bearer optional to allow cookie first
security = HTTPBearer(auto_error=False)


# =============================================================================
# Passwords
# =============================================================================


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(plain: str, hashed: str | None) -> bool:
    """Verify a password against its hash."""
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(plain.encode(), hashed.encode())
    except ValueError:
        return False


# =============================================================================
# Tokens
# =============================================================================


def create_access_token(
    account_id: str,
    role: Role,
    settings: Settings,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed session token for an account."""
    now = datetime.now(timezone.utc)
    if expires_delta:
        expire = now + expires_delta
    else:
        expire = now + timedelta(minutes=settings.jwt_expire_minutes)

    to_encode = {
        "sub": account_id,
        "role": role.value,
        "exp": expire,
        "iat": now,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> dict:
    """Decode and validate a session token."""
    try:
        return jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except ExpiredSignatureError:
        raise CredentialExpired()
    except JWTError:
        raise InvalidCredential()


def token_expiry(token: str) -> datetime | None:
    """Expiry claim of a token, read without verifying it."""
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


def token_hash(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


class RevocationStore:
    """Blacklist of logged-out tokens, keyed by token hash.

    An entry lives until the token's own expiry; expired entries are ignored
    and removed the next time they are looked up.
    """

    def __init__(self, db: Store):
        self.db = db

    def revoke(self, token: str, expires_at: datetime) -> bool:
        """Blacklist a token. Returns False if it was already revoked."""
        try:
            self.db.insert(
                TOKEN_BLACKLIST_TABLE,
                {"token_hash": token_hash(token), "expires_at": expires_at},
            )
        except DuplicateKeyError:
            return False
        return True

    def is_revoked(self, token: str, now: datetime | None = None) -> bool:
        entry = self.db.find_one(TOKEN_BLACKLIST_TABLE, {"token_hash": token_hash(token)})
        if not entry:
            return False
        if as_datetime(entry["expires_at"]) <= (now or utc_now()):
            self.db.delete(TOKEN_BLACKLIST_TABLE, entry["id"])
            return False
        return True


# =============================================================================
# Identity
# =============================================================================


class Identity:
    """Minimal identity context attached to an authenticated request."""

    def __init__(
        self,
        id: str,
        role: Role,
        email: str,
        name: str,
        is_approved: bool | None = None,
    ):
        self.id = id
        self.role = role
        self.email = email
        self.name = name
        # Only meaningful for providers
        self.is_approved = is_approved

    @classmethod
    def from_account(cls, row: dict) -> "Identity":
        role = Role(row["role"])
        return cls(
            id=row["id"],
            role=role,
            email=row["email"],
            name=row["name"],
            is_approved=bool(row.get("is_approved")) if role is Role.provider else None,
        )

    @property
    def is_admin(self) -> bool:
        return self.role is Role.admin

    def to_dict(self) -> dict:
        data = {"id": self.id, "role": self.role.value, "email": self.email, "name": self.name}
        if self.role is Role.provider:
            data["is_approved"] = self.is_approved
        return data


def extract_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None,
    settings: Settings,
) -> str | None:
    """Cookie first, then the bearer header."""
    token = request.cookies.get(settings.auth_cookie_name)
    if token:
        return token
    if credentials and credentials.credentials:
        return credentials.credentials
    return None


def resolve_identity(db: Store, token: str, settings: Settings) -> Identity:
    """Turn a raw token into an identity, or raise an ``AuthenticationError``."""
    if RevocationStore(db).is_revoked(token):
        raise TokenRevoked()

    payload = decode_token(token, settings)
    account_id = payload.get("sub")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise InvalidCredential("Invalid token payload.")
    if not account_id:
        raise InvalidCredential("Invalid token payload.")

    row = db.find_one(ACCOUNTS_TABLE, {"id": account_id, "role": role.value})
    if not row:
        raise IdentityNotFound()
    return Identity.from_account(row)


async def get_current_identity(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
    db: Database,
) -> Identity:
    """Require an authenticated caller."""
    token = extract_token(request, credentials, settings)
    if not token:
        raise Unauthenticated()

    identity = resolve_identity(db, token, settings)
    # Logout needs the exact token that authenticated the request
    request.state.token = token
    return identity


async def get_optional_identity(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    settings: Annotated[Settings, Depends(get_settings)],
    db: Database,
) -> Identity | None:
    """Same resolution, but any authentication failure means anonymous."""
    token = extract_token(request, credentials, settings)
    if not token:
        return None
    try:
        return resolve_identity(db, token, settings)
    except AuthenticationError as e:
        logger.debug(f"Optional auth fell back to anonymous: {e.message}")
        return None


# =============================================================================
# Role and approval predicates
# =============================================================================


def check_roles(identity: Identity, allowed: Iterable[Role]) -> None:
    roles = list(allowed)
    if identity.role not in roles:
        required = " or ".join(r.value for r in roles)
        raise Forbidden(f"Access denied. Required role: {required}. Your role: {identity.role.value}")


def check_approved(identity: Identity) -> None:
    if identity.role is not Role.provider:
        raise Forbidden("This route is only accessible to providers.")
    if not identity.is_approved:
        raise Forbidden("Access denied. Your provider account is pending approval.")


def require_roles(*roles: Role):
    """Dependency factory: the caller must hold one of ``roles``."""

    async def _require(identity: Annotated[Identity, Depends(get_current_identity)]) -> Identity:
        check_roles(identity, roles)
        return identity

    return _require


async def require_approved_provider(
    identity: Annotated[Identity, Depends(get_current_identity)],
) -> Identity:
    check_approved(identity)
    return identity


# Type aliases for dependency injection
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]
OptionalIdentity = Annotated[Identity | None, Depends(get_optional_identity)]
AdminIdentity = Annotated[Identity, Depends(require_roles(Role.admin))]
CustomerIdentity = Annotated[Identity, Depends(require_roles(Role.customer))]
ProviderIdentity = Annotated[Identity, Depends(require_roles(Role.provider))]
CustomerOrAdmin = Annotated[Identity, Depends(require_roles(Role.customer, Role.admin))]
AdminOrProvider = Annotated[Identity, Depends(require_roles(Role.admin, Role.provider))]
CustomerOrProvider = Annotated[Identity, Depends(require_roles(Role.customer, Role.provider))]
AnyRole = Annotated[Identity, Depends(require_roles(Role.customer, Role.provider, Role.admin))]
ApprovedProvider = Annotated[Identity, Depends(require_approved_provider)]
