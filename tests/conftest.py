"""
tests/conftest.py -- Shared test fixtures for LogicGrid unit and integration tests.

This module provides:
  - engine / user_store / protocol_store / sessions: isolated stores for unit tests
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - client: TestClient (follow_redirects=False) over the real ASGI stack
  - make_user() / login(): helpers shared by the route tests

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
The named URI format (file:name?mode=memory&cache=shared&uri=true) shares
one in-memory instance across all connections in the same process. Each
fixture instance gets a uuid-suffixed name so tests never see each other's rows.

ALLOWED_HOSTS must be set before any api/ import: TrustedHostMiddleware reads
it at module load and TestClient sends Host: testserver.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set before any api/core import so Settings picks it up.
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost", "127.0.0.1"]')

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

import auth.tokens
from api.limiter import limiter
from api.main import app
from auth.models import User
from auth.sessions import SessionManager
from auth.store import UserStore
from auth.tokens import hash_password
from core.database import create_db_engine
from protocols.store import ProtocolStore

STRONG_PASSWORD = "Abcdef1!"

# ---------------------------------------------------------------------------
# Speed
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _fast_bcrypt(monkeypatch):
    """Drop the bcrypt cost to the minimum; correctness does not depend on it."""
    monkeypatch.setattr(auth.tokens, "BCRYPT_ROUNDS", 4)


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    eng = create_db_engine(f"sqlite:///file:test_logicgrid_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")
    yield eng
    eng.dispose()


@pytest.fixture
def user_store(engine: Engine) -> UserStore:
    return UserStore(engine)


@pytest.fixture
def protocol_store(engine: Engine) -> ProtocolStore:
    return ProtocolStore(engine)


@pytest.fixture
def sessions(user_store: UserStore) -> SessionManager:
    return SessionManager(user_store)


def make_user(
    store: UserStore,
    email: str,
    password: str = STRONG_PASSWORD,
    is_admin: bool = False,
    is_approved: bool = True,
) -> User:
    """Insert a user directly and return it with its id filled in."""
    user = User(email=email, password_hash=hash_password(password), is_admin=is_admin, is_approved=is_approved)
    user.id = store.create_user(user)
    return user


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(engine: Engine, user_store: UserStore, protocol_store: ProtocolStore, sessions: SessionManager):
    """Return an async context manager that replaces the real lifespan.

    Federation and the suggester start as None (unconfigured); individual
    tests install fakes on client.app.state when they need them.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.engine = engine
        app.state.user_store = user_store
        app.state.protocol_store = protocol_store
        app.state.sessions = sessions
        app.state.federation = None
        app.state.suggester = None
        yield

    return test_lifespan


@pytest.fixture
def client(engine, user_store, protocol_store, sessions) -> Generator[TestClient, None, None]:
    """TestClient over the real app with isolated stores and the rate limiter off.

    follow_redirects=False so federation tests can assert on Location headers.
    """
    app.router.lifespan_context = _patch_lifespan(engine, user_store, protocol_store, sessions)
    limiter.enabled = False
    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as c:
        yield c
    limiter.enabled = True


def login(client: TestClient, email: str, password: str = STRONG_PASSWORD):
    return client.post("/login", json={"email": email, "password": password})


@pytest.fixture
def admin_client(client: TestClient, user_store: UserStore) -> TestClient:
    """client logged in as an approved admin (admin@example.com)."""
    make_user(user_store, "admin@example.com", is_admin=True)
    assert login(client, "admin@example.com").status_code == 200
    return client
