"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond derived
properties). The store maps rows onto Account; the engine makes decisions
over it; routes map it onto response models.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Account:
    """A registered identity with credentials and lockout state.

    username keeps the casing the user registered with; uniqueness is
    enforced on its casefolded form by the store. email is stored trimmed
    and lowercased.

    reset_token_hash is the HMAC digest of the outstanding reset token, never
    the raw token (see auth/tokens.hash_reset_token).

    id is None before the record is written to the database.
    """

    username: str
    email: str
    password_hash: str
    id: int | None = None
    failed_login_attempts: int = 0
    lock_until: datetime | None = None
    last_login: datetime | None = None
    reset_token_hash: str | None = None
    reset_token_expires: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_locked(self, now: datetime) -> bool:
        return self.lock_until is not None and self.lock_until > now

    def public(self) -> dict:
        """Fields that may leave the service. Never includes the hash or reset state."""
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "last_login": self.last_login,
            "created_at": self.created_at,
        }
