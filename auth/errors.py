"""
auth/errors.py -- Error taxonomy for the authentication engine.

Every decision the engine rejects is raised as an AuthError subclass. Each
class carries a stable machine-readable code and the HTTP status the API
layer maps it to, so api/main.py needs one exception handler, not one per
failure mode.

Messages are safe to show to callers. InvalidCredentials uses the same text
whether the identifier or the password was wrong, and InfrastructureError
never carries driver detail -- the original exception is chained via
`raise ... from exc` and logged server-side only.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import math


class AuthError(Exception):
    """Base class for every rejection the engine can produce."""

    code: str = "auth_error"
    status_code: int = 400
    message: str = "Authentication request failed."

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def detail(self) -> dict | None:
        """Extra machine-readable fields for the error envelope."""
        return None


class ValidationError(AuthError):
    """Malformed or missing input, detected before any store access.

    fields lists every violated field, so a client can fix them all in one
    resubmission. problems maps each field to its human-readable reasons.
    """

    code = "validation_error"
    status_code = 400

    def __init__(self, problems: dict[str, list[str]] | str) -> None:
        if isinstance(problems, str):
            # Single-field shorthand: ValidationError("identifier required")
            field = problems.split(" ", 1)[0]
            problems = {field: [problems]}
        self.problems = problems
        reasons = "; ".join(reason for field_reasons in problems.values() for reason in field_reasons)
        super().__init__(reasons)

    @property
    def fields(self) -> list[str]:
        return list(self.problems)

    def detail(self) -> dict:
        return {"fields": self.fields, "problems": self.problems}


class ConflictError(AuthError):
    """Registration would violate username or email uniqueness."""

    code = "conflict"
    status_code = 400

    def __init__(self, field: str) -> None:
        self.field = field
        if field == "email":
            message = "User already exists with this email."
        else:
            message = "Username is already taken."
        super().__init__(message)

    def detail(self) -> dict:
        return {"field": self.field}


class InvalidCredentials(AuthError):
    """Unknown identifier or wrong password -- one message for both."""

    code = "invalid_credentials"
    status_code = 400
    message = "Invalid credentials."

    def __init__(self, attempts_remaining: int | None = None) -> None:
        self.attempts_remaining = attempts_remaining
        super().__init__()

    def detail(self) -> dict | None:
        if self.attempts_remaining is None:
            return None
        return {"attempts_remaining": self.attempts_remaining}


class AccountLocked(AuthError):
    """Login refused while lock_until is in the future."""

    code = "account_locked"
    status_code = 403

    def __init__(self, minutes_remaining: int) -> None:
        self.minutes_remaining = minutes_remaining
        super().__init__(
            "Account is locked due to multiple failed login attempts. "
            f"Try again in {minutes_remaining} minute(s)."
        )

    @classmethod
    def until(cls, lock_until, now) -> "AccountLocked":
        """Build from a lock expiry, rounding the remaining time up to whole minutes."""
        seconds = (lock_until - now).total_seconds()
        return cls(max(1, math.ceil(seconds / 60)))

    def detail(self) -> dict:
        return {"minutes_remaining": self.minutes_remaining, "locked": True}


class InvalidOrExpiredToken(AuthError):
    """Reset token unknown, already used, or past its expiry."""

    code = "invalid_or_expired_token"
    status_code = 400
    message = "Password reset token is invalid or has expired."


class Unauthenticated(AuthError):
    """Missing, expired or forged session token."""

    code = "unauthorized"
    status_code = 401
    message = "Authentication required."


class InfrastructureError(AuthError):
    """Credential store unavailable or timed out. Retryable, never a credentials failure."""

    code = "service_unavailable"
    status_code = 503
    message = "The service is temporarily unavailable. Please retry."
