"""
tests/conftest.py -- Shared test fixtures for RunShop integration tests.

This module provides:
  - _make_test_stores(): creates isolated in-memory DBs for users + products
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - make_identity(): builds a persisted-shape Identity with a cheap bcrypt hash
  - api_client: TestClient plus a seeded admin and a seeded customer

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process.

Environment variables must be set before any api/auth/core import:
get_settings() is cached on first call and api/limiter.py reads it at import.
"""

from __future__ import annotations

import json
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from dataclasses import dataclass

# CRITICAL: Set env before any project import so get_settings() auto-generates
# SECRET_KEY in dev mode and the limiter picks up test-sized limits.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("AUTH_RATE_LIMIT", "10000/minute")
os.environ.setdefault("DEFAULT_RATE_LIMIT", "10000/minute")
os.environ.setdefault("ALLOWED_HOSTS", json.dumps(["testserver", "localhost"]))
os.environ.setdefault("GOOGLE_CLIENT_ID", "")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "")

import pytest
from fastapi.testclient import TestClient

from api.main import app, configure_state
from auth.models import Identity
from auth.passwords import hash_password
from auth.store import UserStore
from catalog.store import ProductStore
from core.config import get_settings

TEST_BCRYPT_ROUNDS = 4

ADMIN_PASSWORD = "Admin#Pass1"
CUSTOMER_PASSWORD = "Runner#Pass1"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_stores(db_suffix: str) -> tuple[UserStore, ProductStore]:
    """Create isolated named shared-memory SQLite stores for test isolation.

    Args:
        db_suffix: Unique string appended to the DB name so test modules
                   don't share state (the fixtures use the module name).
    """
    users_url = f"sqlite:///file:test_users_{db_suffix}?mode=memory&cache=shared&uri=true"
    products_url = f"sqlite:///file:test_products_{db_suffix}?mode=memory&cache=shared&uri=true"
    return UserStore(db_url=users_url), ProductStore(db_url=products_url)


def _patch_lifespan(user_store: UserStore, product_store: ProductStore):
    """Return an async context manager that replaces the real lifespan.

    Runs the same configure_state() wiring as production, with the test
    stores in place of the configured database.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        configure_state(app, get_settings(), user_store, product_store)
        yield

    return test_lifespan


def make_identity(
    username: str,
    password: str,
    *,
    phone: str,
    role: str = "user",
    is_active: bool = True,
    email: str | None = None,
    full_name: str = "Test Runner",
) -> Identity:
    return Identity(
        username=username,
        phone=phone,
        email=email or f"{username}@example.com",
        full_name=full_name,
        hashed_password=hash_password(password, rounds=TEST_BCRYPT_ROUNDS),
        role=role,
        is_active=is_active,
    )


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@dataclass
class ApiContext:
    client: TestClient
    user_store: UserStore
    product_store: ProductStore
    admin_id: str
    admin_token: str
    customer_id: str
    customer_token: str

    admin_password: str = ADMIN_PASSWORD
    customer_password: str = CUSTOMER_PASSWORD

    def bearer(self, token: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"}

    def create_user(self, username: str, password: str, *, phone: str, **kwargs) -> str:
        """Insert an account directly through the store, bypassing signup rules."""
        return self.user_store.create_user(make_identity(username, password, phone=phone, **kwargs))


def _start_client(db_suffix: str) -> Generator[ApiContext, None, None]:
    user_store, product_store = _make_test_stores(db_suffix)

    admin_id = user_store.create_user(make_identity("shopadmin", ADMIN_PASSWORD, phone="0900000001", role="admin"))
    customer_id = user_store.create_user(make_identity("runner01", CUSTOMER_PASSWORD, phone="0900000002"))

    app.router.lifespan_context = _patch_lifespan(user_store, product_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        tokens = app.state.tokens
        yield ApiContext(
            client=client,
            user_store=user_store,
            product_store=product_store,
            admin_id=admin_id,
            admin_token=tokens.issue(user_store.get_by_id(admin_id)),
            customer_id=customer_id,
            customer_token=tokens.issue(user_store.get_by_id(customer_id)),
        )

    user_store.close()
    product_store.close()


@pytest.fixture(scope="module")
def api_client(request) -> Generator[ApiContext, None, None]:
    """Yield an ApiContext for user and auth route tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers but use isolated in-memory stores. One
    admin ("shopadmin") and one customer ("runner01") exist up front.
    """
    yield from _start_client(f"users_{request.module.__name__}")


@pytest.fixture(scope="module")
def search_client(request) -> Generator[ApiContext, None, None]:
    yield from _start_client(f"search_{request.module.__name__}")


@pytest.fixture(autouse=True)
def _fresh_cookie_jar(request):
    """Start every test with an empty cookie jar.

    The module-scoped TestClient keeps cookies between requests; a session
    cookie left behind by one test would take priority over the Bearer
    header in the next.
    """
    for name in ("api_client", "search_client"):
        if name in request.fixturenames:
            request.getfixturevalue(name).client.cookies.clear()
    yield
