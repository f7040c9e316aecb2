"""
auth/engine.py -- The account authentication state machine.

AuthEngine turns a normalized request (register, login, forgot, reset,
profile) into a decision: a result dict on success, or an AuthError subclass
on rejection. All state lives in the AccountStore; the engine keeps nothing
between calls except its collaborators, so one instance is shared by every
request.

Login transition table (per account, at decision time):

  identifier empty              -> ValidationError, no store access
  password empty                -> ValidationError, no store access
  no account matches            -> InvalidCredentials (dummy bcrypt check)
  LOCKED, lock_until > now      -> AccountLocked, NO password comparison
  lock_until <= now             -> lazy unlock (clear lock, counter = 0)
  password mismatch, n < max    -> InvalidCredentials(attempts_remaining)
  password mismatch, n >= max   -> lock for lockout_minutes, AccountLocked
  password match                -> counter = 0, lock cleared, last_login = now

The account is re-read from the store on every attempt. The lock check never
relies on a snapshot taken by an earlier request.

Forgot-password always returns the same message whether or not the email is
registered, so the endpoint cannot be used to enumerate accounts.

Layer rule: no imports from api/. core/ is allowed (settings).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from auth import tokens
from auth.delivery import ResetDelivery
from auth.errors import AccountLocked, ConflictError, InvalidCredentials, InvalidOrExpiredToken, Unauthenticated
from auth.models import Account
from auth.store import AccountStore
from auth.validation import check_new_password, normalize_email, normalize_login, normalize_registration
from core.config import Settings

logger = logging.getLogger("lockbox.engine")

FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent."


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AuthEngine:
    """Decision logic over an AccountStore.

    Args:
        store:    Credential store handle.
        settings: Lockout thresholds, token lifetimes.
        delivery: Receives raw reset tokens for out-of-band delivery.
        clock:    Returns the current UTC time. Tests inject a fake clock.
    """

    def __init__(
        self,
        store: AccountStore,
        settings: Settings,
        delivery: ResetDelivery,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.settings = settings
        self.delivery = delivery
        self.clock = clock

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, username, email, password) -> dict:
        """Create an account and issue a session token.

        Raises ValidationError (all violated fields), then ConflictError for
        email before username.
        """
        username, email, password = normalize_registration(username, email, password)

        if self.store.get_by_email(email) is not None:
            raise ConflictError("email")
        if self.store.get_by_username(username) is not None:
            raise ConflictError("username")

        account = Account(username=username, email=email, password_hash=tokens.hash_password(password))
        account.id = self.store.create_account(account)
        logger.info("Registered account id=%s username=%s", account.id, username)
        return {
            "token": self._issue(account),
            "user": {"id": account.id, "username": account.username, "email": account.email},
        }

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, identifier, password) -> dict:
        identifier, password = normalize_login(identifier, password)

        account = self.store.find_by_identifier(identifier)
        if account is None:
            tokens.burn_dummy_check(password)
            raise InvalidCredentials()

        now = self.clock()
        if account.is_locked(now):
            logger.info("Refused login for locked account id=%s", account.id)
            raise AccountLocked.until(account.lock_until, now)

        if account.lock_until is not None:
            self.store.clear_expired_lock(account.id, now)
            account.lock_until = None
            account.failed_login_attempts = 0

        if not tokens.verify_password(password, account.password_hash):
            self._fail(account, now)

        updated = self.store.record_successful_login(account.id, now) or account
        logger.info("Successful login for account id=%s", updated.id)
        return {
            "token": self._issue(updated),
            "user": {
                "id": updated.id,
                "username": updated.username,
                "email": updated.email,
                "last_login": updated.last_login,
            },
        }

    def _fail(self, account: Account, now: datetime) -> None:
        """Record a failed password check and raise the matching rejection."""
        max_attempts = self.settings.max_failed_logins
        lock_for = timedelta(minutes=self.settings.lockout_minutes)
        updated = self.store.record_failed_login(account.id, now, max_attempts, lock_for)
        if updated is None:
            raise InvalidCredentials()
        if updated.is_locked(now):
            logger.warning(
                "Account id=%s locked after %d failed login attempts",
                updated.id,
                updated.failed_login_attempts,
            )
            raise AccountLocked.until(updated.lock_until, now)
        remaining = max(max_attempts - updated.failed_login_attempts, 0)
        logger.info("Failed login for account id=%s (%d attempt(s) remaining)", updated.id, remaining)
        raise InvalidCredentials(attempts_remaining=remaining)

    # ------------------------------------------------------------------
    # Forgot / reset password
    # ------------------------------------------------------------------

    def forgot_password(self, email) -> dict:
        """Issue a reset token if the email is registered. Always returns the same message."""
        email = normalize_email(email)
        account = self.store.get_by_email(email)
        if account is not None:
            now = self.clock()
            raw_token = tokens.generate_reset_token()
            expires = now + timedelta(seconds=self.settings.reset_token_expire_seconds)
            self.store.set_reset_token(account.id, tokens.hash_reset_token(raw_token), expires, now)
            self.delivery.send_reset(account.email, account.username, raw_token)
            logger.info("Issued password reset token for account id=%s", account.id)
        return {"msg": FORGOT_PASSWORD_MESSAGE}

    def reset_password(self, token, new_password) -> dict:
        """Redeem a reset token. Also lifts any lockout on the account."""
        new_password = check_new_password(new_password)
        if not isinstance(token, str) or not token.strip():
            raise InvalidOrExpiredToken()

        now = self.clock()
        account_id = self.store.consume_reset_token(
            tokens.hash_reset_token(token.strip()),
            now,
            tokens.hash_password(new_password),
        )
        if account_id is None:
            raise InvalidOrExpiredToken()
        logger.info("Password reset completed for account id=%s", account_id)
        return {"msg": "Password has been updated."}

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def profile(self, token: str | None) -> Account:
        """Resolve a session token to its account or raise Unauthenticated."""
        if not token:
            raise Unauthenticated()
        payload = tokens.decode_access_token(token)
        if payload is None:
            raise Unauthenticated()
        account = self.store.get_by_id(payload["user_id"])
        if account is None:
            raise Unauthenticated()
        return account

    def _issue(self, account: Account) -> str:
        return tokens.create_access_token(account.id, account.username)
