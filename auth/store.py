"""
auth/store.py -- SQLAlchemy Core persistence layer for credential records.

Pattern: Repository + Data Mapper.
CredentialStore is the repository; _row_to_record is the mapper. Service,
gate and route code never touches SQL directly.

The auth core only needs two narrow contracts from user storage: "look up a
credential record by email" and "look up / update a credential record by id".
CredentialRepository spells those out as a Protocol so tests and alternative
backends can stand in for the SQL store. create_user() belongs to the user-
management side; it lives here so the operator CLI and test fixtures can seed
records.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Emails are stored lower-cased and looked up lower-cased, so uniqueness and
  lookup are both case-insensitive.

  set_refresh_token_hash(..., expected=...) is a compare-and-swap: the UPDATE
  only matches while the stored hash still equals the value the caller
  validated against. Two concurrent refreshes presenting the same token can
  therefore not both rotate the session.

DB path: auth/session_auth.db unless AUTH_DB_URL is set.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine

from auth.models import CredentialRecord

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'session_auth.db'}"

# Sentinel for "unconditional write" in set_refresh_token_hash().
_ANY = object()

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(64), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),  # always lower-case
    Column("name", String(255), nullable=False),
    Column("password_hash", Text),  # NULL = no local password
    Column("hashed_refresh_token", Text),  # NULL = no active session
    Column("created_at", String(32), nullable=False),
)


class CredentialRepository(Protocol):
    """The storage contract the auth core depends on."""

    def get_by_email(self, email: str) -> CredentialRecord | None: ...

    def get_by_id(self, user_id: str) -> CredentialRecord | None: ...

    def set_refresh_token_hash(self, user_id: str, hashed: str | None, *, expected: object = _ANY) -> bool: ...


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def normalize_email(email: str) -> str:
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for CredentialRecord entities.

    Usage:
        store = CredentialStore()
        store.create_user(CredentialRecord(email="a@b.com", name="A", password_hash=hash_password("secret1")))
        record = store.get_by_email("A@B.com")
        store.close()
    """

    def __init__(self, db_url: str = "") -> None:
        db_url = db_url or _DEFAULT_DB_URL
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query. Used by /health."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    # ------------------------------------------------------------------
    # Writes owned by user management
    # ------------------------------------------------------------------

    def create_user(self, record: CredentialRecord) -> str:
        """Insert a new credential record and return its id.

        A caller-supplied id is kept; otherwise a random hex id is assigned.
        Raises sqlalchemy.exc.IntegrityError if the email (case-insensitive)
        or id already exists.
        """
        user_id = record.id or uuid.uuid4().hex
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    email=normalize_email(record.email),
                    name=record.name,
                    password_hash=record.password_hash,
                    hashed_refresh_token=record.hashed_refresh_token,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
        return user_id

    # ------------------------------------------------------------------
    # Reads used by the auth core
    # ------------------------------------------------------------------

    def get_by_email(self, email: str) -> CredentialRecord | None:
        """Look up a record by email, case-insensitively. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(func.lower(_users.c.email) == normalize_email(email))
            ).fetchone()
        return _row_to_record(row) if row is not None else None

    def get_by_id(self, user_id: str) -> CredentialRecord | None:
        """Look up a record by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_record(row) if row is not None else None

    # ------------------------------------------------------------------
    # Session marker
    # ------------------------------------------------------------------

    def set_refresh_token_hash(self, user_id: str, hashed: str | None, *, expected: object = _ANY) -> bool:
        """Store (or clear, with None) the active refresh-token hash.

        Without expected the write is unconditional (login, logout). With
        expected the row is only updated while its current hash equals
        expected (refresh rotation).

        Returns True if a row was updated, False if user_id was not found or
        the stored hash no longer matched expected.
        """
        condition = _users.c.id == user_id
        if expected is not _ANY:
            if expected is None:
                condition = condition & _users.c.hashed_refresh_token.is_(None)
            else:
                condition = condition & (_users.c.hashed_refresh_token == expected)
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(condition).values(hashed_refresh_token=hashed))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_record(row) -> CredentialRecord:
    return CredentialRecord(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password_hash,
        hashed_refresh_token=row.hashed_refresh_token,
        created_at=row.created_at,
    )
