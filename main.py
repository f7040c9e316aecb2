#!/usr/bin/env python3
"""
Lockbox -- credential authentication service.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000 --reload
  python main.py seed
  python main.py unlock alice
  python main.py unlock alice@example.com

Environment variables (see core/config.py for the full list):
  SECRET_KEY     Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL   SQLAlchemy URL of the credential store. Defaults to ./lockbox.db.
  DEBUG          true for local development (auto-generated SECRET_KEY).
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timezone

from core.config import get_settings

# Demo accounts for manual testing. Passwords satisfy the password policy.
SEED_ACCOUNTS = [
    ("testuser", "testuser@example.com", "Test@1234"),
    ("admin", "admin@example.com", "Admin@1234"),
    ("john_doe", "john.doe@example.com", "JohnDoe@123"),
    ("alice", "alice@example.com", "Alice@Password99"),
    ("bob", "bob@example.com", "Bob$ecure2024"),
]


def _open_store():
    from auth.store import AccountStore

    settings = get_settings()
    return AccountStore(settings.database_url, timeout=settings.store_timeout_seconds)


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def cmd_seed(args: argparse.Namespace) -> int:
    """Create the demo accounts, skipping any whose email or username is taken."""
    from auth.delivery import LogResetDelivery
    from auth.engine import AuthEngine
    from auth.errors import ConflictError

    settings = get_settings()
    store = _open_store()
    engine = AuthEngine(store, settings, LogResetDelivery(settings.reset_url_base))
    created = 0
    try:
        for username, email, password in SEED_ACCOUNTS:
            try:
                engine.register(username, email, password)
            except ConflictError as exc:
                print(f"  [-] {username}: skipped ({exc.message})")
                continue
            created += 1
            print(f"  [+] {username} <{email}>  password: {password}")
    finally:
        store.close()
    print(f"\n  {created} account(s) created.")
    return 0


def cmd_unlock(args: argparse.Namespace) -> int:
    """Clear the lockout and failed-attempt counter for one account."""
    store = _open_store()
    try:
        account = store.find_by_identifier(args.identifier)
        if account is None:
            print(f"  [!] No account matches '{args.identifier}'.")
            return 1
        store.unlock(account.id, datetime.now(timezone.utc))
    finally:
        store.close()
    print(f"  [+] {account.username} unlocked.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="lockbox",
        description="Lockbox credential authentication service.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development).")
    serve.set_defaults(func=cmd_serve)

    seed = sub.add_parser("seed", help="Create demo accounts for manual testing.")
    seed.set_defaults(func=cmd_seed)

    unlock = sub.add_parser("unlock", help="Lift a lockout early.")
    unlock.add_argument("identifier", help="Username or email of the locked account.")
    unlock.set_defaults(func=cmd_unlock)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
