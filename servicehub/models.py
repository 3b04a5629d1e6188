"""Pydantic models for accounts, auth requests and the response envelope."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, EmailStr, Field, TypeAdapter, field_validator

from .query import Pagination

# =============================================================================
# Roles
# =============================================================================


class Role(str, Enum):
    """Account kinds. Role checks happen only in the access-control guard."""

    admin = "admin"
    provider = "provider"
    customer = "customer"


class Availability(str, Enum):
    available = "Available"
    unavailable = "Unavailable"


# =============================================================================
# Accounts
# =============================================================================


class AccountBase(BaseModel):
    """Fields shared by every account kind. The password hash is never exposed."""

    id: str
    name: str
    email: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class AdminAccount(AccountBase):
    role: Literal["admin"] = "admin"


class ProviderAccount(AccountBase):
    role: Literal["provider"] = "provider"
    phone: str
    address: str
    experience_years: int
    skills: list[str]
    is_approved: bool = False
    availability_status: Availability = Availability.available
    rating: float = Field(default=0, ge=0, le=5)


class CustomerAccount(AccountBase):
    role: Literal["customer"] = "customer"
    phone: str
    address: str | None = None
    is_active: bool = True


Account = Annotated[Union[AdminAccount, ProviderAccount, CustomerAccount], Field(discriminator="role")]

_account_adapter: TypeAdapter[Account] = TypeAdapter(Account)


def parse_account(row: dict) -> Account:
    """Build the typed account for a stored row."""
    return _account_adapter.validate_python(row)


def public_account(row: dict) -> dict:
    """JSON-ready account without the password hash."""
    return parse_account(row).model_dump(mode="json")


# =============================================================================
# Auth Models
# =============================================================================


class RegisterRequest(BaseModel):
    """Self-service registration. Which fields are required depends on role."""

    role: Literal["provider", "customer"]
    name: str | None = None
    email: EmailStr | None = None
    password: str | None = None
    phone: str | None = None
    address: str | None = None
    experience_years: int | None = None
    skills: list[str] | None = None

    @field_validator("skills")
    @classmethod
    def normalize_skills(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        return [s.strip() for s in v if s and s.strip()]


class CreateAccountRequest(RegisterRequest):
    """Admin-created account; admins may also create other admins."""

    role: Literal["admin", "provider", "customer"]  # type: ignore[assignment]
    is_approved: bool | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: Role


class AccountUpdate(BaseModel):
    """Self or admin profile update. Identity, role and credentials are not editable here."""

    name: str | None = Field(None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    address: str | None = None
    experience_years: int | None = Field(None, ge=1)
    skills: list[str] | None = Field(None, min_length=1)
    availability_status: Availability | None = None
    is_active: bool | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


# =============================================================================
# Response envelope
# =============================================================================


class ErrorDetail(BaseModel):
    field: str
    message: str


class ApiResponse(BaseModel):
    """Uniform response envelope."""

    success: bool = True
    statusCode: int = 200
    message: str | None = None
    data: Any | None = None
    pagination: Pagination | None = None
    errors: list[ErrorDetail] | None = None
