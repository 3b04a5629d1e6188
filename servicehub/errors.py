"""Error taxonomy and the central exception translator.

Services raise the ``MarketplaceError`` subclasses below for failures they
can name. Everything else reaches ``translate_exception`` which maps known
lower-level failure shapes (duplicate keys, schema validation, malformed
identifiers, token signature errors) onto the same taxonomy and falls back
to ``InternalError``.
"""

from typing import Any

from fastapi import status
from fastapi.exceptions import RequestValidationError
from jose import ExpiredSignatureError, JWTError
from pydantic import ValidationError as PydanticValidationError

# =============================================================================
# Taxonomy
# =============================================================================


class MarketplaceError(Exception):
    """Base class for every failure that is reported to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal Server Error"

    def __init__(self, message: str | None = None, errors: list[dict[str, str]] | None = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)


class ValidationError(MarketplaceError):
    """Missing or malformed input."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class ConflictError(MarketplaceError):
    """Duplicate record or a state transition that already happened."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Conflict"


class AuthenticationError(MarketplaceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required."


class Unauthenticated(AuthenticationError):
    default_message = "Access denied. No token provided."


class TokenRevoked(AuthenticationError):
    default_message = "Token has been invalidated. Please log in again."


class InvalidCredential(AuthenticationError):
    default_message = "Invalid token."


class CredentialExpired(AuthenticationError):
    default_message = "Token expired. Please log in again."


class IdentityNotFound(AuthenticationError):
    default_message = "Invalid token. User not found."


class AuthorizationError(MarketplaceError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Access denied."


Forbidden = AuthorizationError


class NotFoundError(MarketplaceError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class InternalError(MarketplaceError):
    default_message = "Internal Server Error"


# =============================================================================
# Store failure shapes
# =============================================================================


class StoreError(Exception):
    """Unexpected failure inside a storage backend."""


class DuplicateKeyError(StoreError):
    """A write violated a unique index."""

    def __init__(self, table: str, fields: tuple[str, ...]):
        self.table = table
        self.fields = fields
        super().__init__(f"Duplicate key on {table}({', '.join(fields)})")


class ForeignKeyError(StoreError):
    """A delete or write would leave a dangling reference."""

    def __init__(self, table: str, detail: str = ""):
        self.table = table
        self.detail = detail
        super().__init__(f"Foreign key violation on {table}: {detail}")


class InvalidIdentifierError(StoreError):
    """An identifier that the backend cannot parse (e.g. a malformed UUID)."""


# =============================================================================
# Translation
# =============================================================================


def _field_name(loc: tuple[Any, ...]) -> str:
    # Drop the "body"/"query"/"path" prefix FastAPI adds
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header", "cookie")]
    return ".".join(parts) or "request"


def translate_exception(exc: Exception) -> MarketplaceError:
    """Map any exception onto the taxonomy."""
    if isinstance(exc, MarketplaceError):
        return exc

    if isinstance(exc, DuplicateKeyError):
        # Report the most specific field of the index (the last one)
        field = exc.fields[-1] if exc.fields else "id"
        return ConflictError(
            f"Duplicate key error: {field} already exists",
            errors=[{"field": field, "message": "already exists"}],
        )

    if isinstance(exc, (RequestValidationError, PydanticValidationError)):
        errors = [
            {"field": _field_name(tuple(err.get("loc", ()))), "message": err.get("msg", "invalid")}
            for err in exc.errors()
        ]
        return ValidationError("Validation failed", errors=errors)

    if isinstance(exc, ForeignKeyError):
        return ConflictError("Record is still referenced by other records")

    if isinstance(exc, InvalidIdentifierError):
        return NotFoundError("Resource not found")

    # ExpiredSignatureError is a JWTError subclass, check it first
    if isinstance(exc, ExpiredSignatureError):
        return CredentialExpired()
    if isinstance(exc, JWTError):
        return InvalidCredential()

    return InternalError()
