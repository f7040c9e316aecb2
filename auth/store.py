"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account is the mapper. The engine never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Case-insensitive uniqueness is enforced with folded shadow columns
  (username_key, email_key) carrying UNIQUE constraints. Usernames are
  casefolded. Emails are lowercased, the same rule normalize_email applies,
  so distinct addresses such as straße@x.com and strasse@x.com never collide.
  Lookups compare against the folded candidate, so user input is never
  interpreted as a pattern and needs no escaping.

Atomicity:
  The store owns per-account read-modify-write. record_failed_login() runs the
  increment, the read-back and the conditional lock in one transaction, and
  consume_reset_token() decides single use by the rowcount of a conditional
  UPDATE. Concurrent requests therefore cannot both redeem one token, and a
  durable lock_until is never overwritten by a stale snapshot.

Failure mapping:
  Every SQLAlchemyError is caught at this boundary, logged with its traceback,
  and re-raised as InfrastructureError. Unique-constraint races on insert are
  re-raised as ConflictError naming the colliding field.

Timestamps are stored as ISO 8601 UTC text with fixed microsecond precision,
so lexicographic comparison in SQL matches chronological order.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import ConflictError, InfrastructureError
from auth.models import Account

logger = logging.getLogger("lockbox.store")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "accounts",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(30), nullable=False),
    # casefold can expand one character to three (e.g. "ﬃ" -> "ffi")
    Column("username_key", String(90), nullable=False, unique=True),
    Column("email", String(320), nullable=False),
    Column("email_key", String(320), nullable=False, unique=True),  # lowercased
    Column("password_hash", Text, nullable=False),
    Column("failed_login_attempts", Integer, nullable=False, server_default="0"),
    Column("lock_until", String(32)),
    Column("last_login", String(32)),
    Column("reset_token_hash", String(64), index=True),  # HMAC-SHA256 hex
    Column("reset_token_expires", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers are not blocked during writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def fold(value: str) -> str:
    """Casefold a username for uniqueness checks and lookups."""
    return value.strip().casefold()


def fold_email(value: str) -> str:
    """Lowercase an email for uniqueness checks and lookups."""
    return value.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account records.

    Usage:
        store = AccountStore("sqlite:///lockbox.db")
        account_id = store.create_account(Account(username="alice", email="alice@example.com", password_hash=h))
        account = store.find_by_identifier("ALICE")
        store.close()
    """

    def __init__(self, db_url: str, timeout: float = 5.0) -> None:
        connect_args: dict = {}
        engine_kwargs: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            # Busy timeout: a locked database raises instead of waiting forever.
            connect_args["timeout"] = timeout
        else:
            engine_kwargs["pool_timeout"] = timeout
            engine_kwargs["pool_pre_ping"] = True
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_kwargs)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        with self._guard("create schema"):
            _metadata.create_all(self.engine)

    @contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        """Map driver failures onto InfrastructureError at the store boundary."""
        try:
            yield
        except SQLAlchemyError as exc:
            logger.error("Credential store failure during %s", operation, exc_info=True)
            raise InfrastructureError() from exc

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self._guard("get_by_id"), self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_username(self, username: str) -> Account | None:
        """Look up an account by username, case-insensitively."""
        with self._guard("get_by_username"), self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.username_key == fold(username))).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by email, case-insensitively."""
        with self._guard("get_by_email"), self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email_key == fold_email(email))).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_by_identifier(self, identifier: str) -> Account | None:
        """Look up an account by username or email, case-insensitively.

        Usernames cannot contain "@", so an identifier with one is matched
        against emails only and one without against usernames only. An
        identifier never resolves to two different accounts.
        """
        if "@" in identifier:
            return self.get_by_email(identifier)
        return self.get_by_username(identifier)

    def count(self) -> int:
        with self._guard("count"), self.engine.connect() as conn:
            result = conn.execute(text("SELECT COUNT(*) FROM accounts")).scalar()
        return result or 0

    def ping(self) -> bool:
        """Return True if the store answers a trivial query. Used by /health."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("Credential store ping failed", exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned ID.

        Raises ConflictError("email") or ConflictError("username") if a
        concurrent registration already claimed either key.
        """
        now = _iso(_now())
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    _accounts.insert().values(
                        username=account.username,
                        username_key=fold(account.username),
                        email=account.email,
                        email_key=fold_email(account.email),
                        password_hash=account.password_hash,
                        failed_login_attempts=0,
                        created_at=now,
                        updated_at=now,
                    )
                )
                return result.inserted_primary_key[0]
        except IntegrityError as exc:
            field = "email" if self.get_by_email(account.email) is not None else "username"
            raise ConflictError(field) from exc
        except SQLAlchemyError as exc:
            logger.error("Credential store failure during create_account", exc_info=True)
            raise InfrastructureError() from exc

    def clear_expired_lock(self, account_id: int, now: datetime) -> bool:
        """Lazy unlock: clear lock_until and the counter if the lock has lapsed.

        The WHERE clause re-checks the expiry so a lock set by a concurrent
        request after our read is left alone. Returns True if a row changed.
        """
        stamp = _iso(now)
        with self._guard("clear_expired_lock"), self.engine.begin() as conn:
            result = conn.execute(
                _accounts.update()
                .where(
                    (_accounts.c.id == account_id)
                    & _accounts.c.lock_until.is_not(None)
                    & (_accounts.c.lock_until <= stamp)
                )
                .values(lock_until=None, failed_login_attempts=0, updated_at=stamp)
            )
        return result.rowcount > 0

    def record_failed_login(
        self, account_id: int, now: datetime, max_attempts: int, lock_for: timedelta
    ) -> Account | None:
        """Atomically count a failed password check and lock at the threshold.

        Increment, read-back and conditional lock share one transaction. The
        lock is only written when the account is not already locked, so a
        racing request cannot extend or shorten a lock that is in force.
        Returns the account as it stands after the update.
        """
        stamp = _iso(now)
        with self._guard("record_failed_login"), self.engine.begin() as conn:
            conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(
                    failed_login_attempts=_accounts.c.failed_login_attempts + 1,
                    updated_at=stamp,
                )
            )
            conn.execute(
                _accounts.update()
                .where(
                    (_accounts.c.id == account_id)
                    & (_accounts.c.failed_login_attempts >= max_attempts)
                    & (_accounts.c.lock_until.is_(None) | (_accounts.c.lock_until <= stamp))
                )
                .values(lock_until=_iso(now + lock_for))
            )
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def record_successful_login(self, account_id: int, now: datetime) -> Account | None:
        """Reset the counter, clear any lock, and stamp last_login."""
        stamp = _iso(now)
        with self._guard("record_successful_login"), self.engine.begin() as conn:
            conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(failed_login_attempts=0, lock_until=None, last_login=stamp, updated_at=stamp)
            )
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def set_reset_token(self, account_id: int, token_hash: str, expires: datetime, now: datetime) -> None:
        """Store a reset token digest and expiry, superseding any outstanding token."""
        with self._guard("set_reset_token"), self.engine.begin() as conn:
            conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(reset_token_hash=token_hash, reset_token_expires=_iso(expires), updated_at=_iso(now))
            )

    def consume_reset_token(self, token_hash: str, now: datetime, password_hash: str) -> int | None:
        """Redeem a reset token: replace the password hash and clear token, lock and counter.

        Matches only a token whose expiry is still in the future. The UPDATE
        is conditional on the token hash, so of two concurrent redemptions at
        most one sees rowcount == 1. Returns the account ID, or None if the
        token is unknown, already used, or expired.
        """
        stamp = _iso(now)
        with self._guard("consume_reset_token"), self.engine.begin() as conn:
            row = conn.execute(
                select(_accounts.c.id).where(
                    (_accounts.c.reset_token_hash == token_hash) & (_accounts.c.reset_token_expires > stamp)
                )
            ).fetchone()
            if row is None:
                return None
            result = conn.execute(
                _accounts.update()
                .where((_accounts.c.id == row.id) & (_accounts.c.reset_token_hash == token_hash))
                .values(
                    password_hash=password_hash,
                    reset_token_hash=None,
                    reset_token_expires=None,
                    lock_until=None,
                    failed_login_attempts=0,
                    updated_at=stamp,
                )
            )
        return row.id if result.rowcount == 1 else None

    def unlock(self, account_id: int, now: datetime) -> bool:
        """Administrative unlock: clear lock_until and the counter unconditionally."""
        with self._guard("unlock"), self.engine.begin() as conn:
            result = conn.execute(
                _accounts.update()
                .where(_accounts.c.id == account_id)
                .values(lock_until=None, failed_login_attempts=0, updated_at=_iso(now))
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        email=row.email,
        password_hash=row.password_hash,
        failed_login_attempts=row.failed_login_attempts or 0,
        lock_until=_parse(row.lock_until),
        last_login=_parse(row.last_login),
        reset_token_hash=row.reset_token_hash,
        reset_token_expires=_parse(row.reset_token_expires),
        created_at=_parse(row.created_at),
        updated_at=_parse(row.updated_at),
    )
