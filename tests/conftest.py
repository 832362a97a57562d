"""
tests/conftest.py -- Shared test fixtures for the user directory.

This module provides:
  - store / sessions: a fresh in-memory UserStore and InMemorySessionStore
  - make_user: factory that inserts an account with a known password
  - _make_test_store(): isolated named shared-memory DB for HTTP tests
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - web_client: TestClient with follow_redirects=False and fresh stores
  - signed_in_client: web_client with a registered, logged-in user

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
for the HTTP fixtures because TestClient runs sync route handlers in a
thread pool. Plain :memory: DBs are per-connection and would present a blank
schema to each worker thread. The named URI format
(file:name?mode=memory&cache=shared&uri=true) shares one in-memory instance
across all connections in the same process.

BCRYPT_ROUNDS and UPLOAD_DIR must be set before any project import:
get_settings() is cached on first use, and api/main.py mounts the upload
directory at import time.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

# Set before any auth/core import so the cached Settings pick them up.
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="userdir-test-uploads-"))
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.passwords import hash_password
from auth.sessions import InMemorySessionStore
from auth.store import UserStore
from core.config import get_settings

TEST_PASSWORD = "pw1"


# ---------------------------------------------------------------------------
# Store helpers
# ---------------------------------------------------------------------------


def _make_test_store() -> UserStore:
    """Create an isolated named shared-memory SQLite store.

    A uuid suffix keeps every test on its own database, so cookies, users and
    lockout counters never leak between tests.
    """
    name = f"test_userdir_{uuid.uuid4().hex}"
    return UserStore(db_url=f"sqlite:///file:{name}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore, sessions: InMemorySessionStore):
    """Return an async context manager that replaces the real lifespan.

    The purge_task is a long-sleeping coroutine so shutdown has a real
    asyncio.Task to cancel.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        app.state.sessions = sessions
        app.state.upload_dir = Path(get_settings().upload_dir)
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


def _create_user(store: UserStore, name: str, email: str, age: int = 30, password: str = TEST_PASSWORD) -> int:
    """Insert a user directly through the store and return its id."""
    from auth.models import UserRecord

    return store.create_user(UserRecord(name=name, email=email, age=age, password_hash=hash_password(password)))


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    """Plain in-memory UserStore for single-threaded store/service tests."""
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def sessions() -> InMemorySessionStore:
    return InMemorySessionStore(max_age=3600)


@pytest.fixture
def make_user():
    """Factory fixture: make_user(store, name, email, age=30, password="pw1") -> id."""
    return _create_user


# ---------------------------------------------------------------------------
# HTTP fixtures -- fresh stores per test so the client's cookie jar starts empty
# ---------------------------------------------------------------------------


@pytest.fixture
def web_client() -> Generator[tuple[TestClient, UserStore, InMemorySessionStore], None, None]:
    """Yield (client, user_store, sessions) for web route integration tests.

    follow_redirects=False is essential: we assert on redirect *locations*
    (e.g. 302 to /login), which are invisible once the client follows the
    redirect and returns the final 200 response.
    """
    user_store = _make_test_store()
    session_store = InMemorySessionStore(max_age=3600)

    app.router.lifespan_context = _patch_lifespan(user_store, session_store)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as client:
        yield client, user_store, session_store

    user_store.close()


@pytest.fixture
def signed_in_client(web_client) -> tuple[TestClient, UserStore, InMemorySessionStore, int]:
    """Yield (client, user_store, sessions, user_id) with "Ann Admin" logged in."""
    client, user_store, session_store = web_client
    uid = _create_user(user_store, "Ann Admin", "ann@example.com", age=41)
    resp = client.post("/login", data={"email": "ann@example.com", "password": TEST_PASSWORD})
    assert resp.status_code == 302, resp.text
    return client, user_store, session_store, uid
