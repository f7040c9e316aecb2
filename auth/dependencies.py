"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Two token sources are checked in priority order:
  1. Authorization: Bearer <token> header -- the single-page client.
  2. JWT cookie ("access_token") -- set on login/register responses.

Both converge on an Account after AuthEngine.profile() verifies the token.

try_get_current_account() is the soft variant (returns None on failure).
get_current_account() wraps it and raises Unauthenticated (401).

Layer rule: auth/dependencies.py may import from fastapi (for Request)
because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Request

from auth.engine import AuthEngine
from auth.errors import Unauthenticated
from auth.models import Account


def get_engine(request: Request) -> AuthEngine:
    return request.app.state.engine


def _extract_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get("access_token")


def try_get_current_account(request: Request) -> Account | None:
    """Authenticate the request via Bearer header or cookie.

    Returns the Account on success, None on any token failure. Store
    failures still propagate as InfrastructureError -- an unavailable store
    is not the same as an invalid token.
    """
    try:
        return get_engine(request).profile(_extract_token(request))
    except Unauthenticated:
        return None


def get_current_account(request: Request) -> Account:
    """Require authentication. Raises Unauthenticated (HTTP 401) otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(account: Account = Depends(get_current_account)): ...
    """
    account = try_get_current_account(request)
    if account is None:
        raise Unauthenticated()
    return account
