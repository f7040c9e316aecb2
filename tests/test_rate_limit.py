"""
tests/test_rate_limit.py -- Integration tests for per-IP rate limiting.

Covers:
  - POST /auth/login is throttled by LOGIN_RATE_LIMIT
  - other routes are throttled by the API-wide API_RATE_LIMIT default
  - 429 responses use the shared error envelope and carry Retry-After
  - /health is exempt

Limits are read from settings on every request, so each test lowers them on
the cached Settings instance and clears the limiter's counters around itself.
"""

from __future__ import annotations

import pytest

from api.limiter import limiter
from core.config import get_settings


@pytest.fixture
def fresh_limits():
    limiter.reset()
    yield get_settings()
    limiter.reset()


def test_login_throttled(api_client, fresh_limits, monkeypatch):
    client, _ = api_client
    monkeypatch.setattr(fresh_limits, "login_rate_limit", "2/minute")

    body = {"identifier": "nobody", "password": "Wrong-pass1"}
    statuses = [client.post("/api/v1/auth/login", json=body).status_code for _ in range(3)]
    assert statuses == [400, 400, 429]

    resp = client.post("/api/v1/auth/login", json=body)
    assert resp.status_code == 429
    assert resp.json()["error"]["code"] == "rate_limited"
    assert int(resp.headers["retry-after"]) > 0


def test_default_limit_applies_to_other_routes(api_client, fresh_limits, monkeypatch):
    client, _ = api_client
    monkeypatch.setattr(fresh_limits, "api_rate_limit", "3/minute")

    body = {"email": "ghost@example.com"}
    statuses = [client.post("/api/v1/auth/forgot-password", json=body).status_code for _ in range(4)]
    assert statuses == [200, 200, 200, 429]

    resp = client.post("/api/v1/auth/forgot-password", json=body)
    assert resp.json()["error"]["code"] == "rate_limited"
    assert int(resp.headers["retry-after"]) > 0


def test_health_exempt(api_client, fresh_limits, monkeypatch):
    client, _ = api_client
    monkeypatch.setattr(fresh_limits, "api_rate_limit", "1/minute")

    statuses = [client.get("/api/v1/health").status_code for _ in range(3)]
    assert statuses == [200, 200, 200]
