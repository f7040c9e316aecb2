"""
API request and response models for the Lockbox REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Request fields are StrictStr: a JSON object or number where a string is
expected (e.g. {"identifier": {"$ne": null}}) fails validation before the
engine runs. Missing fields default to "" so the engine reports them with its
own messages ("identifier required") instead of a generic schema error.
Semantic checks (lengths, password policy, email syntax) belong to the
engine, which reports every violated field at once.
"""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictStr

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(extra="ignore")

    username: StrictStr = ""
    email: StrictStr = ""
    password: StrictStr = ""


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    identifier accepts a username or an email. The single-page client posts it
    as "username", so that key is accepted as an alias.
    """

    model_config = ConfigDict(extra="ignore")

    identifier: StrictStr = Field(default="", validation_alias=AliasChoices("identifier", "username"))
    password: StrictStr = ""


class ForgotPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/forgot-password."""

    model_config = ConfigDict(extra="ignore")

    email: StrictStr = ""


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/v1/auth/reset-password.

    token may be omitted when it is carried in the URL path instead. The
    single-page client posts the new password as "newPassword", so that key
    is accepted as an alias.
    """

    model_config = ConfigDict(extra="ignore")

    token: StrictStr = ""
    new_password: StrictStr = Field(default="", validation_alias=AliasChoices("new_password", "newPassword"))


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserPublic(BaseModel):
    """Public account fields returned alongside a session token."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    last_login: Optional[datetime] = None


class AuthResponse(BaseModel):
    """Response for successful register and login."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserPublic
    msg: str


class ProfileResponse(BaseModel):
    """Response for GET /api/v1/auth/profile."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None


class MessageResponse(BaseModel):
    """Generic {msg} response (forgot/reset password, logout)."""

    model_config = ConfigDict(frozen=True)

    msg: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[dict] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str
    version: str
    components: dict[str, str]
