#!/usr/bin/env python3
"""
Session Auth -- operator CLI for the credential store.

User management is not part of the HTTP API. These commands let an operator
seed credential records and force a session to end.

Usage:
  python main.py create-user --email a@b.com --name "A"
  python main.py create-user --email a@b.com --name "A" --id u1 --password secret1
  python main.py revoke-session --email a@b.com

Environment variables:
  AUTH_DB_URL   SQLAlchemy URL of the credential store (default: auth/session_auth.db).
                Overridden by --db-url.
"""

import argparse
import getpass
import sys
from typing import Optional

from sqlalchemy.exc import IntegrityError

from auth.errors import HashingFailure
from auth.hashing import hash_password
from auth.models import CredentialRecord
from auth.store import CredentialStore

_MIN_PASSWORD_LENGTH = 6


def _resolve_db_url(cli_value: Optional[str]) -> str:
    if cli_value:
        return cli_value
    from core.config import get_settings

    return get_settings().auth_db_url


def _read_password(supplied: Optional[str]) -> Optional[str]:
    """Return the supplied password or prompt twice for one. None on mismatch."""
    if supplied:
        return supplied
    first = getpass.getpass("Password: ")
    second = getpass.getpass("Repeat password: ")
    if first != second:
        print("  [!] Passwords do not match.")
        return None
    return first


def create_user(store: CredentialStore, email: str, name: str, password: str, user_id: Optional[str] = None) -> int:
    if len(password) < _MIN_PASSWORD_LENGTH:
        print(f"  [!] Password must be at least {_MIN_PASSWORD_LENGTH} characters.")
        return 1
    try:
        record = CredentialRecord(email=email, name=name, id=user_id, password_hash=hash_password(password))
    except HashingFailure:
        print("  [!] Password could not be hashed (bcrypt accepts at most 72 bytes).")
        return 1
    try:
        new_id = store.create_user(record)
    except IntegrityError:
        print(f"  [!] A user with email '{email}' or id '{user_id}' already exists.")
        return 1
    print(new_id)
    return 0


def revoke_session(store: CredentialStore, email: str) -> int:
    record = store.get_by_email(email)
    if record is None:
        print(f"  [!] No user with email '{email}'.")
        return 1
    store.set_refresh_token_hash(str(record.id), None)
    print(f"  Session for {record.email} revoked.")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="session-auth",
        description="Manage credential records for Session Auth.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py create-user --email a@b.com --name "A"
  python main.py revoke-session --email a@b.com
        """,
    )
    parser.add_argument(
        "--db-url",
        metavar="URL",
        default=None,
        help="SQLAlchemy URL of the credential store (default: AUTH_DB_URL or auth/session_auth.db)",
    )
    sub = parser.add_subparsers(dest="command")

    create = sub.add_parser("create-user", help="Create a credential record")
    create.add_argument("--email", required=True, help="Login email (stored lower-case)")
    create.add_argument("--name", required=True, help="Display name")
    create.add_argument("--id", dest="user_id", default=None, help="Explicit user id (default: random)")
    create.add_argument("--password", default=None, help="Password (prompted when omitted)")

    revoke = sub.add_parser("revoke-session", help="Clear the stored refresh-token hash for a user")
    revoke.add_argument("--email", required=True, help="Email of the user whose session ends")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    store = CredentialStore(db_url=_resolve_db_url(args.db_url))
    try:
        if args.command == "create-user":
            password = _read_password(args.password)
            if password is None:
                return 1
            return create_user(store, args.email, args.name, password, user_id=args.user_id)
        return revoke_session(store, args.email)
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
