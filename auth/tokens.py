"""
auth/tokens.py -- Password hashing, session JWT, and reset-token utilities.

Security design decisions:
  Passwords: bcrypt with a configurable work factor (BCRYPT_ROUNDS, default
       12). Bcrypt is the right choice for low-entropy secrets because its cost
       factor makes offline brute force expensive. The comparison inside
       bcrypt.checkpw is constant-time and case-sensitive. _DUMMY_HASH enables
       timing equalization when an identifier does not exist.

  JWT: python-jose with HS256. Tokens carry user_id, username (as sub) and
       expiry. sign() is a pure function of (claims, secret, ttl); verification
       returns None on any failure -- the route layer turns that into a 401.

  Reset tokens: secrets.token_urlsafe(32) gives 256 bits of entropy, so
       guessing is infeasible. Only HMAC-SHA256(SECRET_KEY, token) is
       persisted; the raw value exists only in the delivery message. The
       deterministic digest keeps the lookup a single indexed equality.

  SECRET_KEY: sourced from core.config.get_settings(), validated at startup.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from datetime import datetime, timedelta, timezone

import bcrypt
from jose import JWTError, jwt

from core.config import get_settings

logger = logging.getLogger("lockbox.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
#
# passlib's wrap-bug detection feeds bcrypt 4.x a password longer than 72
# bytes, which it rejects. Direct bcrypt usage has no compatibility shim.
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only reads the first 72 bytes of its input. The password policy
    allows up to 128 characters, so longer inputs are pre-hashed with
    SHA-256 (64 hex bytes) so every character stays significant.
    """
    return bcrypt.hashpw(_prepare(plain), bcrypt.gensalt(rounds=_settings.bcrypt_rounds)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(_prepare(plain), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash -- treat as a mismatch rather than a 500.
        logger.warning("Stored password hash is malformed")
        return False


def _prepare(plain: str) -> bytes:
    raw = plain.encode("utf-8")
    if len(raw) > 72:
        return hashlib.sha256(raw).hexdigest().encode("ascii")
    return raw


# Timing equalization dummy hash.
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones. The engine verifies against it when the
# identifier does not exist, so an unknown account costs one bcrypt check
# just like a wrong password does.
_DUMMY_HASH: str = hash_password("lockbox_timing_dummy")


def burn_dummy_check(plain: str) -> None:
    """Run one bcrypt verification against the dummy hash and discard the result."""
    verify_password(plain, _DUMMY_HASH)


# ---------------------------------------------------------------------------
# JWT sign / verify
# ---------------------------------------------------------------------------


def sign(claims: dict, secret: str, ttl: timedelta, now: datetime | None = None) -> str:
    """Encode claims as an HS256 JWT expiring ttl after now."""
    issued = now or datetime.now(timezone.utc)
    payload = dict(claims)
    payload["iat"] = issued
    payload["exp"] = issued + ttl
    return jwt.encode(payload, secret, algorithm=_ALGORITHM)


def create_access_token(user_id: int, username: str, expire_seconds: int = 0) -> str:
    """Issue a session token bound to the account id and username.

    Args:
        user_id:        Account primary key.
        username:       Stored as the JWT subject claim.
        expire_seconds: Session duration in seconds. If 0 (default), uses
                        Settings.token_expire_seconds (one hour).
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    return sign(
        {"sub": username, "user_id": user_id},
        _settings.secret_key,
        timedelta(seconds=duration),
    )


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Expired tokens and bad signatures both raise JWTError inside jose, so a
    single except covers them. Returning None keeps callers simple.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload.get("user_id"), int) or "sub" not in payload:
        return None
    return payload


# ---------------------------------------------------------------------------
# Reset tokens
# ---------------------------------------------------------------------------


def generate_reset_token() -> str:
    """Return a fresh URL-safe reset token with 256 bits of entropy."""
    return secrets.token_urlsafe(32)


def hash_reset_token(raw_token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_token) as a hex string.

    An attacker who reads the accounts table cannot redeem a token without
    also knowing SECRET_KEY.
    """
    return hmac.new(
        _settings.secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, expire_seconds: int = 0) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="lax": not sent on cross-site POST -- CSRF mitigation.
    secure: only sent over HTTPS when SECURE_COOKIES=true.
    max_age: matches the JWT expiry so both expire together.
    """
    duration = expire_seconds if expire_seconds > 0 else _settings.token_expire_seconds
    response.set_cookie(
        "access_token",
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
        max_age=duration,
    )
