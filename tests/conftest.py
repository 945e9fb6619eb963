"""
tests/conftest.py -- Shared test fixtures for the JWT Pizza test suite.

This module provides:
  - engine: a fresh in-memory database per test, for store/guard unit tests
  - StubFactory: stands in for the external order factory
  - api_client: TestClient wired to an isolated database with an admin JWT
  - register: helper fixture that registers a diner through the API

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixtures because route handlers run in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

The DEBUG env var must be set before any api/ import so get_settings()
auto-generates SECRET_KEY in dev mode rather than raising ValueError.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from api.main import app, wire_state
from auth.models import User
from auth.store import UserStore
from auth.tokens import TokenService, hash_password
from core.config import get_settings
from core.db import make_engine
from core.errors import UpstreamError
from orders.models import FactoryReceipt, Order

ADMIN_EMAIL = "a@jwt.com"
ADMIN_PASSWORD = "admin"


def _shared_memory_url(prefix: str) -> str:
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"


# ---------------------------------------------------------------------------
# Order factory stub
# ---------------------------------------------------------------------------


class StubFactory:
    """Records submissions and answers like the factory would.

    Set fail=True to make the next submissions raise UpstreamError.
    """

    def __init__(self) -> None:
        self.submitted: list[tuple[Order, dict]] = []
        self.fail = False

    def submit(self, order: Order, diner: dict) -> FactoryReceipt:
        if self.fail:
            raise UpstreamError("Failed to fulfill order at factory", report_url="https://factory.test/report/1")
        self.submitted.append((order, diner))
        return FactoryReceipt(jwt=f"factory.jwt.order{order.id}")


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """An isolated shared-memory database, disposed after the test."""
    eng = make_engine(_shared_memory_url("unit"))
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def tokens() -> TokenService:
    return TokenService("x" * 40)


# ---------------------------------------------------------------------------
# Integration fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine, factory: StubFactory):
    """Return an async context manager that replaces the real lifespan.

    Wires the test engine and the stub factory into app.state with the same
    wire_state() the real lifespan uses, so routes run the real guard,
    permission engine and stores.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        wire_state(app, engine, get_settings(), factory=factory)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, int], None, None]:
    """Yield (client, admin_token, admin_id) for API integration tests.

    The admin user (a@jwt.com / admin) is created before the client starts
    and its JWT is issued with the application's own signing key.
    """
    engine = make_engine(_shared_memory_url("api"))
    factory = StubFactory()
    admin_id = UserStore(engine).ensure_admin("pizza admin", ADMIN_EMAIL, hash_password(ADMIN_PASSWORD))
    token = TokenService(get_settings().secret_key).issue(admin_id)

    app.router.lifespan_context = _patch_lifespan(engine, factory)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, admin_id

    engine.dispose()


@pytest.fixture
def register(api_client) -> Callable[..., tuple[dict, str]]:
    """Return a helper that registers a fresh diner and yields (user, token)."""
    client, _token, _uid = api_client

    def _register(name: str = "pizza diner", password: str = "a") -> tuple[dict, str]:
        email = f"{uuid.uuid4().hex[:10]}@test.com"
        resp = client.post("/api/auth", json={"name": name, "email": email, "password": password})
        assert resp.status_code == 200, resp.text
        body = resp.json()
        return body["user"], body["token"]

    return _register


@pytest.fixture
def make_user(user_store: UserStore) -> Callable[..., User]:
    """Create a user directly in the store (no HTTP) and return it with roles."""

    def _make(email: str, roles=None, name: str = "test user") -> User:
        uid = user_store.create_user(User(name=name, email=email, hashed_password=hash_password("pw")), roles=roles)
        return user_store.get_by_id(uid)

    return _make
