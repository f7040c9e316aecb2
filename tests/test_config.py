"""Unit tests for core/config.py -- Settings validation.

Covers:
- production mode refuses to start without SECRET_KEY
- short SECRET_KEY rejected in every mode
- debug mode generates a usable key
- lockout and bcrypt defaults
"""

import pytest

from core.config import Settings


def test_missing_secret_in_production_rejected(monkeypatch) -> None:
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.delenv("SECRET_KEY", raising=False)
    with pytest.raises(ValueError):
        Settings(_env_file=None)


def test_short_secret_rejected(monkeypatch) -> None:
    monkeypatch.setenv("DEBUG", "true")
    with pytest.raises(ValueError):
        Settings(_env_file=None, secret_key="too-short")


def test_debug_generates_secret(monkeypatch) -> None:
    monkeypatch.setenv("DEBUG", "true")
    monkeypatch.delenv("SECRET_KEY", raising=False)
    settings = Settings(_env_file=None)
    assert len(settings.secret_key) >= 32


def test_defaults(monkeypatch) -> None:
    monkeypatch.delenv("BCRYPT_ROUNDS", raising=False)
    settings = Settings(_env_file=None, secret_key="s" * 32)
    assert settings.bcrypt_rounds == 12
    assert settings.max_failed_logins == 5
    assert settings.lockout_minutes == 15
    assert settings.token_expire_seconds == 3600
    assert settings.reset_token_expire_seconds == 3600


def test_bcrypt_rounds_floor(monkeypatch) -> None:
    with pytest.raises(ValueError):
        Settings(_env_file=None, secret_key="s" * 32, bcrypt_rounds=3)
