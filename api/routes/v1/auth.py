"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/v1/auth/register                 -- create account; returns session token
  POST /api/v1/auth/login                    -- identifier + password; returns session token
  POST /api/v1/auth/forgot-password          -- issue reset token (generic response)
  POST /api/v1/auth/reset-password           -- redeem reset token from the body
  POST /api/v1/auth/reset-password/{token}   -- redeem reset token from the link path
  GET  /api/v1/auth/profile                  -- current account (requires auth)
  GET  /api/v1/auth/logout                   -- stateless; clears the cookie

Handlers are plain `def` so FastAPI runs them in its threadpool: bcrypt work
for one request never blocks the event loop for the others.

Rejections are raised as AuthError subclasses by the engine and rendered by
the handler in api/main.py, so the handlers below only cover the happy path.

Security:
  POST /login carries its own rate limit (LOGIN_RATE_LIMIT per IP). Every
  other route falls under the API-wide default (API_RATE_LIMIT per IP).
  Unknown identifiers still cost one bcrypt check (see AuthEngine.login).
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    ProfileResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserPublic,
)
from auth.dependencies import get_current_account, get_engine
from auth.engine import AuthEngine
from auth.models import Account
from auth.tokens import set_auth_cookie
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - POST /auth/register, /auth/login, /auth/forgot-password, /auth/reset-password: public
# - GET  /auth/logout: public -- clearing a cookie needs no prior auth
# - GET  /auth/profile: requires auth (get_current_account)
router = APIRouter()


def _token_response(result: dict, msg: str) -> JSONResponse:
    body = AuthResponse(
        token=result["token"],
        expires_in=_settings.token_expire_seconds,
        user=UserPublic(**result["user"]),
        msg=msg,
    )
    resp = JSONResponse(status_code=200, content=body.model_dump(mode="json"))
    set_auth_cookie(resp, result["token"])
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse)
def register(body: RegisterRequest, engine: AuthEngine = Depends(get_engine)) -> JSONResponse:
    """Create an account and sign the caller in."""
    result = engine.register(body.username, body.email, body.password)
    return _token_response(result, "Registration successful.")


@router.post("/auth/login", response_model=AuthResponse)
# The router must register the rate-limited wrapper, so @limiter.limit sits below it.
@limiter.limit(login_rate_limit)
def login(request: Request, body: LoginRequest, engine: AuthEngine = Depends(get_engine)) -> JSONResponse:
    """Authenticate with a username or email plus password.

    Wrong identifier and wrong password produce the same message. After
    repeated failures the account locks and this returns 403 until the lock
    lapses.
    """
    result = engine.login(body.identifier, body.password)
    return _token_response(result, "Login successful.")


@router.post("/auth/forgot-password", response_model=MessageResponse)
def forgot_password(body: ForgotPasswordRequest, engine: AuthEngine = Depends(get_engine)) -> MessageResponse:
    """Send a reset link if the email is registered. The response never says which."""
    return MessageResponse(**engine.forgot_password(body.email))


@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(body: ResetPasswordRequest, engine: AuthEngine = Depends(get_engine)) -> MessageResponse:
    """Replace the password using a reset token from the request body."""
    return MessageResponse(**engine.reset_password(body.token, body.new_password))


@router.post("/auth/reset-password/{token}", response_model=MessageResponse)
def reset_password_from_link(
    token: str,
    body: ResetPasswordRequest,
    engine: AuthEngine = Depends(get_engine),
) -> MessageResponse:
    """Replace the password using the token embedded in the emailed link."""
    return MessageResponse(**engine.reset_password(token, body.new_password))


@router.get("/auth/logout", response_model=MessageResponse)
def logout() -> JSONResponse:
    """Stateless logout: the client discards its token; the cookie is cleared."""
    resp = JSONResponse(content=MessageResponse(msg="Logged out successfully.").model_dump())
    resp.delete_cookie("access_token")
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=ProfileResponse)
def profile(current: Account = Depends(get_current_account)) -> ProfileResponse:
    """Return the public fields of the authenticated account."""
    return ProfileResponse(**current.public())
