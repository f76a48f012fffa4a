"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; the store, token service and auth service do the work.

Two views of a user exist on purpose:
  CredentialRecord -- the full stored row, including the password hash and the
      stored refresh-token hash. Never leaves auth/.
  UserSummary -- the stripped view (id, email, name) handed to routes and
      serialised into responses.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

ACCESS_TOKEN_KIND = "access"
REFRESH_TOKEN_KIND = "refresh"


@dataclass(frozen=True)
class UserSummary:
    """Public identity of an authenticated user."""

    id: str
    email: str
    name: str


@dataclass
class CredentialRecord:
    """A stored user credential.

    hashed_refresh_token is the session marker: non-null means the identity
    has an active session. The core only ever writes this field.
    """

    email: str
    name: str
    id: str | None = None
    password_hash: str | None = None
    hashed_refresh_token: str | None = None
    created_at: str | None = None

    @property
    def has_active_session(self) -> bool:
        return self.hashed_refresh_token is not None

    def summary(self) -> UserSummary:
        """Return the record without its password and refresh-token hashes."""
        return UserSummary(id=str(self.id), email=self.email, name=self.name)


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified token payload."""

    sub: str
    email: str
    kind: str  # ACCESS_TOKEN_KIND or REFRESH_TOKEN_KIND
    issued_at: datetime
    expires_at: datetime
    jti: str | None = None


@dataclass(frozen=True)
class TokenPair:
    """A freshly minted access/refresh pair.

    expires_in is the access-token lifetime in seconds, echoed to clients so
    they know when to refresh pre-emptively.
    """

    access_token: str
    refresh_token: str
    expires_in: int

    def __repr__(self) -> str:
        # Bearer credentials must never end up in logs via repr().
        return f"TokenPair(access_token=<redacted>, refresh_token=<redacted>, expires_in={self.expires_in})"


@dataclass(frozen=True)
class LoginResult:
    user: UserSummary
    tokens: TokenPair


@dataclass(frozen=True)
class AccessContext:
    """Produced by the access-token gate for protected routes."""

    user_id: str
    email: str
    name: str


@dataclass(frozen=True)
class RefreshContext:
    """Produced by the refresh-token gate for the refresh route."""

    user_id: str
    email: str
    refresh_token: str

    def __repr__(self) -> str:
        return f"RefreshContext(user_id={self.user_id!r}, email={self.email!r}, refresh_token=<redacted>)"
