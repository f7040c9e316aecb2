"""
tests/conftest.py -- Shared test fixtures for Lockbox.

This module provides:
  - FakeClock / clock: controllable UTC clock for lockout and expiry tests
  - RecordingDelivery: captures reset tokens instead of logging them
  - store / engine: in-memory AccountStore and an AuthEngine wired to the fakes
  - api_client: TestClient against the real app with a patched lifespan

Design: the API fixture uses a named shared-memory SQLite URI (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread.

Environment must be set before any auth/core import: DEBUG lets
get_settings() auto-generate SECRET_KEY, BCRYPT_ROUNDS=4 keeps hashing fast,
and the rate limits are raised so lockout tests are not throttled first.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("API_RATE_LIMIT", "10000/minute")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.engine import AuthEngine
from auth.store import AccountStore
from core.config import get_settings


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingDelivery:
    """ResetDelivery that keeps every token it is handed."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, str]] = []

    def send_reset(self, email: str, username: str, token: str) -> None:
        self.sent.append((email, username, token))

    @property
    def last_token(self) -> str:
        return self.sent[-1][2]


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture
def store() -> Generator[AccountStore, None, None]:
    s = AccountStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def engine(store: AccountStore, clock: FakeClock, delivery: RecordingDelivery) -> AuthEngine:
    return AuthEngine(store, get_settings(), delivery, clock=clock)


# ---------------------------------------------------------------------------
# API fixture -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


def _patch_lifespan(store: AccountStore, delivery: RecordingDelivery):
    """Return a lifespan that wires the test store and delivery into app.state."""

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.store = store
        app.state.engine = AuthEngine(store, get_settings(), delivery)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, RecordingDelivery], None, None]:
    """Yield (client, delivery) for API integration tests.

    Each test module gets its own named in-memory database, so accounts
    created by one module never collide with another's.
    """
    name = request.module.__name__.rsplit(".", 1)[-1]
    store = AccountStore(f"sqlite:///file:lockbox_{name}?mode=memory&cache=shared&uri=true")
    delivery = RecordingDelivery()

    app.router.lifespan_context = _patch_lifespan(store, delivery)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, delivery

    store.close()
