"""
tests/conftest.py -- Shared test fixtures for Session Auth.

This module provides:
  - token_service / store / service / gatekeeper: unit-level collaborators
    wired the same way api/main.py wires them, on an in-memory store seeded
    with one user (id "u1", email "a@b.com", name "A", password "secret1").
  - RecordingAuditSink: captures audit events for assertions.
  - api_client: TestClient against the real FastAPI app with a patched
    lifespan that injects an isolated store.

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
api_client because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. Unit fixtures run in one thread and use plain :memory:.

Signing secrets must be in the environment before any api/ import because
api/main.py loads settings at import time.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before importing api.main -- get_settings() runs at import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("JWT_ACCESS_SECRET", "test-access-secret-0123456789abcdef0123")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret-0123456789abcdef012")
os.environ.setdefault("JWT_ACCESS_EXPIRATION_TIME", "3600")
os.environ.setdefault("JWT_REFRESH_EXPIRATION_TIME", "604800")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.gates import Gatekeeper
from auth.hashing import hash_password
from auth.models import CredentialRecord
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import TokenService

ACCESS_SECRET = "unit-access-secret-0123456789abcdef01234"
REFRESH_SECRET = "unit-refresh-secret-0123456789abcdef0123"

SEED_ID = "u1"
SEED_EMAIL = "a@b.com"
SEED_NAME = "A"
SEED_PASSWORD = "secret1"

# One bcrypt run for the whole session; seeding every test store with a fresh
# hash would dominate test time.
_SEED_HASH = hash_password(SEED_PASSWORD)


class RecordingAuditSink:
    """AuditSink that keeps every event in memory."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str | None, dict]] = []

    def record(self, event: str, user_id: str | None, **details) -> None:
        self.events.append((event, user_id, details))

    def names(self) -> list[str]:
        return [e[0] for e in self.events]


def seed_user(store: CredentialStore) -> str:
    return store.create_user(CredentialRecord(id=SEED_ID, email=SEED_EMAIL, name=SEED_NAME, password_hash=_SEED_HASH))


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def token_service() -> TokenService:
    return TokenService(ACCESS_SECRET, REFRESH_SECRET, access_ttl="3600", refresh_ttl="604800")


@pytest.fixture
def token_factory():
    """Build a TokenService with the test secrets and custom TTLs or clock."""

    def _make(**kwargs) -> TokenService:
        return TokenService(ACCESS_SECRET, REFRESH_SECRET, **kwargs)

    return _make


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    """In-memory CredentialStore holding the seeded user."""
    s = CredentialStore("sqlite:///:memory:")
    seed_user(s)
    yield s
    s.close()


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def service(store: CredentialStore, token_service: TokenService, audit: RecordingAuditSink) -> AuthService:
    return AuthService(store, token_service, audit=audit)


@pytest.fixture
def gatekeeper(service: AuthService, store: CredentialStore, token_service: TokenService) -> Gatekeeper:
    return Gatekeeper(service, store, token_service)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(store: CredentialStore, tokens: TokenService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store into app.state so TestClient routes see an isolated
    DB rather than the on-disk default.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        service = AuthService(store, tokens)
        app.state.credential_store = store
        app.state.auth_service = service
        app.state.gatekeeper = Gatekeeper(service, store, tokens)
        yield

    return test_lifespan


@pytest.fixture
def api_client(token_service: TokenService) -> Generator[tuple[TestClient, CredentialStore], None, None]:
    """Yield (client, store) for HTTP integration tests.

    The store holds the seeded user; each test gets its own database.
    """
    db_url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    store = CredentialStore(db_url=db_url)
    seed_user(store)

    app.router.lifespan_context = _patch_lifespan(store, token_service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, store

    store.close()
