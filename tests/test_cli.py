"""
tests/test_cli.py -- Tests for the main.py command-line interface.

Covers:
  - seed creates the demo accounts and is idempotent
  - unlock clears an active lockout by username or email
  - unlock exits 1 for an unknown account
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

import main
from auth.store import AccountStore
from core.config import get_settings


@pytest.fixture
def db_url(tmp_path, monkeypatch) -> str:
    url = f"sqlite:///{tmp_path / 'cli.db'}"
    settings = get_settings().model_copy(update={"database_url": url})
    monkeypatch.setattr(main, "get_settings", lambda: settings)
    return url


def test_seed_creates_accounts(db_url, capsys) -> None:
    assert main.main(["seed"]) == 0
    store = AccountStore(db_url)
    try:
        assert store.count() == len(main.SEED_ACCOUNTS)
        assert store.find_by_identifier("alice@example.com").username == "alice"
    finally:
        store.close()
    assert "5 account(s) created" in capsys.readouterr().out


def test_seed_twice_skips_existing(db_url, capsys) -> None:
    main.main(["seed"])
    capsys.readouterr()
    assert main.main(["seed"]) == 0
    out = capsys.readouterr().out
    assert "0 account(s) created" in out
    assert "skipped" in out


def test_unlock_clears_lock(db_url) -> None:
    main.main(["seed"])
    store = AccountStore(db_url)
    try:
        alice = store.find_by_identifier("alice")
        now = datetime.now(timezone.utc)
        for _ in range(5):
            store.record_failed_login(alice.id, now, 5, timedelta(minutes=15))
        assert store.get_by_id(alice.id).is_locked(now)

        assert main.main(["unlock", "ALICE@example.com"]) == 0
        account = store.get_by_id(alice.id)
        assert account.lock_until is None
        assert account.failed_login_attempts == 0
    finally:
        store.close()


def test_unlock_unknown_account(db_url, capsys) -> None:
    assert main.main(["unlock", "nobody"]) == 1
    assert "No account matches" in capsys.readouterr().out
