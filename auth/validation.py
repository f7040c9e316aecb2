"""
auth/validation.py -- Input normalization and the password policy.

Every check here runs before the engine touches the store. Checks collect
problems per field and raise a single ValidationError listing all of them,
so a client can fix every field in one resubmission.

Inputs must be plain strings. A structured value (e.g. {"$ne": null}) is a
type error, never something to stringify and query with.

Email syntax is checked with email-validator (no DNS deliverability lookup).
"""

from __future__ import annotations

import re

from email_validator import EmailNotValidError, validate_email

from auth.errors import ValidationError

USERNAME_MIN = 3
USERNAME_MAX = 30
PASSWORD_MIN = 8
PASSWORD_MAX = 128

_UPPER = re.compile(r"[A-Z]")
_LOWER = re.compile(r"[a-z]")
_DIGIT = re.compile(r"[0-9]")
_SYMBOL = re.compile(r"[^A-Za-z0-9]")


def password_problems(password: str) -> list[str]:
    """Return every way password violates the policy (empty list when it complies).

    Policy: 8-128 characters with at least one uppercase letter, one lowercase
    letter, one digit, and one character outside [A-Za-z0-9].
    """
    problems: list[str] = []
    if not PASSWORD_MIN <= len(password) <= PASSWORD_MAX:
        problems.append(f"Password must be between {PASSWORD_MIN} and {PASSWORD_MAX} characters.")
    if not _UPPER.search(password):
        problems.append("Password must contain an uppercase letter.")
    if not _LOWER.search(password):
        problems.append("Password must contain a lowercase letter.")
    if not _DIGIT.search(password):
        problems.append("Password must contain a digit.")
    if not _SYMBOL.search(password):
        problems.append("Password must contain a special character.")
    return problems


def _require_str(problems: dict[str, list[str]], field: str, value) -> bool:
    if isinstance(value, str):
        return True
    problems.setdefault(field, []).append(f"{field} must be a string.")
    return False


def normalize_registration(username, email, password) -> tuple[str, str, str]:
    """Trim username and email, lowercase email, and validate all three.

    Returns (username, email, password). Raises ValidationError naming every
    violated field.
    """
    problems: dict[str, list[str]] = {}

    if _require_str(problems, "username", username):
        username = username.strip()
        if not USERNAME_MIN <= len(username) <= USERNAME_MAX:
            problems.setdefault("username", []).append(
                f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters."
            )
        if "@" in username:
            # Only emails contain "@", so a username can never shadow an email at login.
            problems.setdefault("username", []).append("Username must not contain '@'.")

    if _require_str(problems, "email", email):
        try:
            email = normalize_email(email)
        except ValidationError as exc:
            problems.update(exc.problems)

    if _require_str(problems, "password", password):
        reasons = password_problems(password)
        if reasons:
            problems["password"] = reasons

    if problems:
        raise ValidationError(problems)
    return username, email, password


def normalize_email(email) -> str:
    """Return the trimmed, lowercased email or raise ValidationError."""
    if not isinstance(email, str):
        raise ValidationError({"email": ["email must be a string."]})
    candidate = email.strip()
    try:
        validated = validate_email(candidate, check_deliverability=False)
    except EmailNotValidError as exc:
        raise ValidationError({"email": [f"Please include a valid email: {exc}"]}) from exc
    return validated.normalized.lower()


def normalize_login(identifier, password) -> tuple[str, str]:
    """Check login input in the order the state machine requires.

    An empty identifier is reported before an empty password. The password
    is not trimmed -- it is compared exactly.
    """
    if not isinstance(identifier, str):
        raise ValidationError({"identifier": ["identifier must be a string."]})
    identifier = identifier.strip()
    if not identifier:
        raise ValidationError("identifier required")
    if not isinstance(password, str):
        raise ValidationError({"password": ["password must be a string."]})
    if not password:
        raise ValidationError("password required")
    return identifier, password


def check_new_password(password) -> str:
    """Validate a replacement password against the registration policy."""
    if not isinstance(password, str):
        raise ValidationError({"new_password": ["new_password must be a string."]})
    reasons = password_problems(password)
    if reasons:
        raise ValidationError({"new_password": reasons})
    return password
