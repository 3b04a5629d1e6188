"""Pytest configuration and fixtures."""

import os
import secrets
from pathlib import Path

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

if not os.environ.get("RUN_INTEGRATION"):
    os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
    os.environ.setdefault("STORAGE_BACKEND", "memory")
    os.environ.setdefault("ENVIRONMENT", "test")
    os.environ["RATE_LIMIT_ENABLED"] = "false"
else:
    # Integration runs read real Supabase credentials from .env
    from dotenv import load_dotenv

    load_dotenv(Path(__file__).parent.parent / ".env", override=True)
    os.environ["RATE_LIMIT_ENABLED"] = "false"

from fastapi.testclient import TestClient  # noqa: E402

from servicehub.auth import create_access_token, hash_password  # noqa: E402
from servicehub.config import get_settings  # noqa: E402
from servicehub.database import ACCOUNTS_TABLE, SERVICES_TABLE, InMemoryStore, get_db  # noqa: E402
from servicehub.main import app  # noqa: E402
from servicehub.models import Role  # noqa: E402

TEST_PASSWORD = "password123"

# bcrypt is slow on purpose; hash once per run
_TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def store():
    """Fresh in-memory store, wired into the app for this test."""
    db = InMemoryStore()
    app.dependency_overrides[get_db] = lambda: db
    yield db
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture
def client(store):
    """Create a test client backed by the per-test store."""
    return TestClient(app)


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def bearer():
    """Build an Authorization header for a raw token."""
    return _bearer


@pytest.fixture
def login(client):
    """POST /login for a stored account, using the shared test password."""

    def _login(row: dict, role: str | None = None, password: str = TEST_PASSWORD):
        return client.post("/login", json={"email": row["email"], "password": password, "role": role or row["role"]})

    return _login


@pytest.fixture
def make_account(store, settings):
    """Insert an account directly and return ``(row, auth_headers)``."""
    counter = iter(range(1, 10_000))

    def _make(role: str = "customer", **fields):
        n = next(counter)
        record = {
            "role": role,
            "name": f"{role.title()} {n}",
            "email": f"{role}{n}@example.com",
            "password_hash": _TEST_PASSWORD_HASH,
        }
        if role == "provider":
            record.update(
                phone="555-0100",
                address="1 Main St",
                experience_years=3,
                skills=["plumbing"],
                is_approved=True,
                availability_status="Available",
                rating=0,
            )
        elif role == "customer":
            record.update(phone="555-0200", address="2 Side St", is_active=True)
        record.update(fields)

        row = store.insert(ACCOUNTS_TABLE, record)
        token = create_access_token(row["id"], Role(role), settings)
        return row, _bearer(token)

    return _make


@pytest.fixture
def admin(make_account):
    return make_account("admin")


@pytest.fixture
def customer(make_account):
    return make_account("customer")


@pytest.fixture
def provider(make_account):
    """An approved provider."""
    return make_account("provider")


@pytest.fixture
def pending_provider(make_account):
    return make_account("provider", is_approved=False)


@pytest.fixture
def service(store):
    return store.insert(
        SERVICES_TABLE,
        {
            "name": "pipe repair",
            "description": "Fix leaking pipes",
            "category": "Plumbing",
            "base_price": 50.0,
            "unit": "hour",
            "icon": None,
            "is_active": True,
        },
    )
