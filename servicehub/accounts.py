"""Account registration, login and profile management."""

from typing import Any, Iterable, Mapping

from .auth import Identity, hash_password, verify_password
from .database import (
    ACCOUNTS_TABLE,
    JOB_APPLICATIONS_TABLE,
    JOB_POSTS_TABLE,
    REVIEWS_TABLE,
    SUBSCRIPTIONS_TABLE,
    Store,
)
from .errors import AuthenticationError, ConflictError, Forbidden, NotFoundError, ValidationError
from .logging_config import get_logger
from .models import AccountUpdate, CreateAccountRequest, RegisterRequest, Role, public_account
from .query import QueryResult, run_query

logger = get_logger("servicehub.accounts")

MIN_PASSWORD_LENGTH = 8
MAX_PASSWORD_LENGTH = 64
MIN_EXPERIENCE_YEARS = 1

PROVIDER_ONLY_FIELDS = {"experience_years", "skills", "availability_status"}
CUSTOMER_ONLY_FIELDS = {"is_active"}
SORT_FIELDS = ("created_at", "updated_at", "name", "email", "rating", "experience_years")


def _require(value, field: str, message: str) -> None:
    if value is None or (isinstance(value, (str, list)) and not value):
        raise ValidationError.for_field(field, message)


def validate_registration(request: RegisterRequest | CreateAccountRequest, role: Role) -> None:
    """Per-role required fields, reported one field at a time."""
    _require(request.name and request.name.strip(), "name", "Name is required")
    _require(request.email, "email", "Email is required")
    _require(request.password, "password", "Password is required")
    if not MIN_PASSWORD_LENGTH <= len(request.password) <= MAX_PASSWORD_LENGTH:
        raise ValidationError.for_field(
            "password",
            f"Password must be {MIN_PASSWORD_LENGTH}-{MAX_PASSWORD_LENGTH} characters",
        )

    if role is Role.admin:
        return

    _require(request.phone, "phone", "Phone is required")
    _require(request.address, "address", "Address is required")

    if role is Role.provider:
        _require(request.experience_years, "experience_years", "Experience years is required for providers")
        if request.experience_years < MIN_EXPERIENCE_YEARS:
            raise ValidationError.for_field(
                "experience_years", f"Minimum {MIN_EXPERIENCE_YEARS} year of experience is required"
            )
        _require(request.skills, "skills", "At least one skill is required")


def build_account_record(request: RegisterRequest | CreateAccountRequest, role: Role) -> dict:
    record = {
        "role": role.value,
        "name": request.name.strip(),
        "email": str(request.email).lower(),
        "password_hash": hash_password(request.password),
    }
    if role is Role.provider:
        record.update(
            phone=request.phone,
            address=request.address,
            experience_years=request.experience_years,
            skills=request.skills,
            is_approved=bool(getattr(request, "is_approved", None)),
            availability_status="Available",
            rating=0,
        )
    elif role is Role.customer:
        record.update(phone=request.phone, address=request.address, is_active=True)
    return record


class AccountService:
    """Account operations over a record store."""

    def __init__(self, db: Store):
        self.db = db

    def _ensure_email_free(self, role: Role, email: str, exclude_id: str | None = None) -> None:
        existing = self.db.find_one(ACCOUNTS_TABLE, {"role": role.value, "email": email})
        if existing and existing["id"] != exclude_id:
            raise ConflictError(
                "Entry with this email already exists",
                errors=[{"field": "email", "message": "already exists"}],
            )

    def _create(self, request: RegisterRequest | CreateAccountRequest, role: Role) -> dict:
        validate_registration(request, role)
        record = build_account_record(request, role)
        self._ensure_email_free(role, record["email"])
        # The unique index still guards against a concurrent registration
        row = self.db.insert(ACCOUNTS_TABLE, record)
        logger.info(f"Account created | id={row['id']} | role={role.value}")
        return row

    def register(self, request: RegisterRequest) -> dict:
        """Self-service registration. Providers start unapproved."""
        return self._create(request, Role(request.role))

    def create_account(self, request: CreateAccountRequest) -> dict:
        """Admin-created account of any role."""
        return self._create(request, Role(request.role))

    def authenticate(self, email: str, password: str, role: Role) -> dict:
        row = self.db.find_one(ACCOUNTS_TABLE, {"role": role.value, "email": email.lower()})
        if not row or not verify_password(password, row.get("password_hash")):
            raise AuthenticationError("Invalid email or password")

        if role is Role.provider and not row.get("is_approved"):
            raise Forbidden("Access denied. Your provider account is pending admin approval.")
        if role is Role.customer and not row.get("is_active", True):
            raise Forbidden("Access denied. Your account has been deactivated.")
        return row

    def get_row(self, account_id: str) -> dict:
        row = self.db.get(ACCOUNTS_TABLE, account_id)
        if not row:
            raise NotFoundError("User not found")
        return row

    def get_account(self, actor: Identity, account_id: str) -> dict:
        """Admins see anyone; everyone else only themselves."""
        if not actor.is_admin and actor.id != account_id:
            raise Forbidden("You can only view your own profile")
        return public_account(self.get_row(account_id))

    def update_account(self, actor: Identity, account_id: str, update: AccountUpdate) -> dict:
        if not actor.is_admin and actor.id != account_id:
            raise Forbidden("You can only update your own profile")

        row = self.get_row(account_id)
        role = Role(row["role"])
        changes = update.model_dump(mode="json", exclude_unset=True, exclude_none=True)

        not_applicable: set[str] = set()
        if role is not Role.customer:
            not_applicable |= CUSTOMER_ONLY_FIELDS
        if role is not Role.provider:
            not_applicable |= PROVIDER_ONLY_FIELDS
        misplaced = set(changes) & not_applicable
        if misplaced:
            field = sorted(misplaced)[0]
            raise ValidationError.for_field(field, f"{field} does not apply to {role.value} accounts")
        if "is_active" in changes and not actor.is_admin:
            raise Forbidden("Only admins can change account activation")

        if "email" in changes:
            changes["email"] = changes["email"].lower()
            self._ensure_email_free(role, changes["email"], exclude_id=account_id)

        if not changes:
            return public_account(row)

        updated = self.db.update(ACCOUNTS_TABLE, account_id, changes)
        if not updated:
            raise NotFoundError("User not found")
        logger.info(f"Account updated | id={account_id} | by={actor.id} | fields={sorted(changes)}")
        return public_account(updated)

    def _delete_dependents(self, account_id: str) -> dict[str, int]:
        """Remove every record that belongs to the account."""
        removed = {JOB_APPLICATIONS_TABLE: 0}
        for post in self.db.find(JOB_POSTS_TABLE, {"customer_id": account_id}):
            removed[JOB_APPLICATIONS_TABLE] += self.db.delete_where(JOB_APPLICATIONS_TABLE, {"job_post_id": post["id"]})
        removed[JOB_POSTS_TABLE] = self.db.delete_where(JOB_POSTS_TABLE, {"customer_id": account_id})
        removed[JOB_APPLICATIONS_TABLE] += self.db.delete_where(JOB_APPLICATIONS_TABLE, {"provider_id": account_id})
        removed[SUBSCRIPTIONS_TABLE] = self.db.delete_where(SUBSCRIPTIONS_TABLE, {"provider_id": account_id})
        removed[REVIEWS_TABLE] = sum(
            self.db.delete_where(REVIEWS_TABLE, {side: account_id}) for side in ("customer_id", "provider_id")
        )
        return removed

    def delete_account(self, account_id: str) -> dict:
        """Delete the account along with its posts, applications, subscriptions and reviews."""
        self.get_row(account_id)
        removed = self._delete_dependents(account_id)
        deleted = self.db.delete(ACCOUNTS_TABLE, account_id)
        if not deleted:
            raise NotFoundError("User not found")
        logger.info(f"Account deleted | id={account_id} | role={deleted['role']} | removed={removed}")
        return deleted

    def list_accounts(
        self,
        role: Role,
        params: Mapping[str, Any],
        search_fields: Iterable[str],
        default_filters: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> QueryResult:
        """One page of accounts of a single kind, password hashes stripped."""
        options.setdefault("sort_fields", SORT_FIELDS)
        result = run_query(
            self.db,
            ACCOUNTS_TABLE,
            params,
            search_fields,
            {**(default_filters or {}), "role": role.value},
            **options,
        )
        result.data = [public_account(row) for row in result.data]
        return result
