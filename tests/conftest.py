"""
tests/conftest.py -- Shared test fixtures for BookOrbit.

This module provides:
  - engine / users / catalog / ledger: fresh in-memory stores for unit tests
  - api_client: TestClient over the real app with a patched lifespan
  - auth_headers(): Authorization header for a locally minted identity token

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit-test fixtures stay on one thread and use plain :memory:.

DEBUG and IDENTITY_PROVIDER must be set before any auth/core import so
get_settings() auto-generates SECRET_KEY and the local HS256 verifier is used.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core import (get_settings() is lru_cached).
os.environ.setdefault("DEBUG", "true")
os.environ["IDENTITY_PROVIDER"] = "local"

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.tokens import create_identity_token
from auth.verifier import LocalIdentityVerifier
from catalog.store import CatalogStore
from core.database import create_db_engine
from orders.store import OrderLedger
from users.store import UserDirectory

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def auth_headers(email: str, **kwargs) -> dict[str, str]:
    """Return an Authorization header carrying a valid local identity token for email."""
    return {"Authorization": f"Bearer {create_identity_token(email, **kwargs)}"}


def make_user(users: UserDirectory, email: str, role: str = "user") -> str:
    """Upsert a user and give them a role. Returns the email for chaining."""
    users.upsert_user(email, name=email.split("@")[0])
    if role != "user":
        users.set_role(email, role)
    return email


# ---------------------------------------------------------------------------
# Unit-test stores
# ---------------------------------------------------------------------------


@pytest.fixture
def engine():
    eng = create_db_engine("sqlite:///:memory:")
    yield eng
    eng.dispose()


@pytest.fixture
def users(engine) -> UserDirectory:
    return UserDirectory(engine)


@pytest.fixture
def catalog(engine, users) -> CatalogStore:
    return CatalogStore(engine, users)


@pytest.fixture
def ledger(engine) -> OrderLedger:
    return OrderLedger(engine)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(engine):
    """Return an async context manager that replaces the real lifespan.

    Wires stores built on the test engine into app.state so routes see an
    isolated database, and installs the local verifier so tests can mint
    their own tokens.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.users = UserDirectory(engine)
        app.state.catalog = CatalogStore(engine, app.state.users)
        app.state.orders = OrderLedger(engine)
        app.state.verifier = LocalIdentityVerifier()
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, UserDirectory], None, None]:
    """Yield (client, users) for API integration tests.

    One isolated shared-memory database per test module. users is the same
    UserDirectory the app uses, so tests can promote librarians/admins
    directly (roles are never changed over HTTP).
    """
    engine = create_db_engine(f"sqlite:///file:test_api_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    app.router.lifespan_context = _patch_lifespan(engine)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, app.state.users

    engine.dispose()
