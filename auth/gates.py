"""
auth/gates.py -- Request gating: the checks that run before a protected operation.

A gate is a plain callable (InboundRequest, context) -> context. It either
returns a context value for the next gate (or the handler), or raises an
AuthError. run_gates() applies an ordered chain and returns the last context.
Nothing here touches FastAPI: auth/dependencies.py adapts the chains to
Depends(), and tests drive the gates with hand-built InboundRequest values.

Chains:
  access_chain  -- bearer access token -> AccessContext
  refresh_chain -- refresh token signature/expiry, then stored-hash match
                   -> RefreshContext
  login_chain   -- email/password via AuthService.validate_credentials
                   -> UserSummary

The refresh chain deliberately re-checks the stored hash that
AuthService.refresh also checks: a cryptographically valid but rotated-out
refresh token is rejected with 403 at the boundary, before the service runs.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from auth.audit import notify
from auth.errors import AccessDenied, InvalidCredentials, TokenInvalid, Unauthorized
from auth.hashing import verify_refresh_token
from auth.models import AccessContext, RefreshContext, UserSummary
from auth.service import AuthService
from auth.store import CredentialRepository
from auth.tokens import TokenService

logger = logging.getLogger("sessionauth.auth")

_BEARER_PREFIX = "bearer "


@dataclass(frozen=True)
class InboundRequest:
    """The parts of an HTTP request the gates are allowed to read."""

    authorization: str | None = None
    body: Mapping[str, Any] = field(default_factory=dict)


Gate = Callable[[InboundRequest, Any], Any]


def run_gates(request: InboundRequest, gates: Sequence[Gate]) -> Any:
    """Apply gates in order, threading each result into the next."""
    context: Any = None
    for gate in gates:
        context = gate(request, context)
    return context


def extract_bearer_token(authorization: str | None) -> str | None:
    """Return the token from an 'Authorization: Bearer <token>' value, else None."""
    if not authorization or not authorization.lower().startswith(_BEARER_PREFIX):
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None


class Gatekeeper:
    """Owns the gate implementations and their collaborators."""

    def __init__(self, service: AuthService, store: CredentialRepository, tokens: TokenService) -> None:
        self.service = service
        self.store = store
        self.tokens = tokens

    # ------------------------------------------------------------------
    # Access token
    # ------------------------------------------------------------------

    def access_token(self, request: InboundRequest, context: Any = None) -> AccessContext:
        """Admit requests carrying a valid access token for an existing user."""
        token = extract_bearer_token(request.authorization)
        if token is None:
            raise Unauthorized()
        try:
            claims = self.tokens.verify_access_token(token)
        except TokenInvalid as exc:
            logger.info("Access token rejected: %s", exc.reason)
            raise Unauthorized() from None

        # The user may have been deleted after the token was issued.
        record = self.store.get_by_id(claims.sub)
        if record is None:
            raise Unauthorized()
        return AccessContext(user_id=claims.sub, email=claims.email, name=record.name)

    # ------------------------------------------------------------------
    # Refresh token
    # ------------------------------------------------------------------

    def refresh_token(self, request: InboundRequest, context: Any = None) -> RefreshContext:
        """Check the body refresh_token's signature, expiry and kind."""
        token = request.body.get("refresh_token")
        if not isinstance(token, str) or not token:
            raise Unauthorized("Refresh token required.")
        try:
            claims = self.tokens.verify_refresh_token(token)
        except TokenInvalid as exc:
            logger.info("Refresh token rejected: %s", exc.reason)
            raise Unauthorized("Invalid refresh token.") from None
        return RefreshContext(user_id=claims.sub, email=claims.email, refresh_token=token)

    def refresh_session(self, request: InboundRequest, context: RefreshContext) -> RefreshContext:
        """Check that the refresh token is the one stored for the active session."""
        record = self.store.get_by_id(context.user_id)
        if record is None or not record.has_active_session:
            notify(self.service.audit, "refresh_denied", context.user_id, reason="no_session")
            raise AccessDenied()
        if not verify_refresh_token(context.refresh_token, record.hashed_refresh_token):
            notify(self.service.audit, "refresh_denied", context.user_id, reason="mismatch")
            raise AccessDenied()
        return RefreshContext(user_id=str(record.id), email=record.email, refresh_token=context.refresh_token)

    # ------------------------------------------------------------------
    # Local credentials
    # ------------------------------------------------------------------

    def local_credentials(self, request: InboundRequest, context: Any = None) -> UserSummary:
        """Admit a login request whose email/password match a stored record."""
        email = request.body.get("email")
        password = request.body.get("password")
        if not isinstance(email, str) or not isinstance(password, str) or not email or not password:
            raise InvalidCredentials()
        return self.service.validate_credentials(email, password)


# ---------------------------------------------------------------------------
# Chains
# ---------------------------------------------------------------------------


def access_chain(gatekeeper: Gatekeeper) -> list[Gate]:
    return [gatekeeper.access_token]


def refresh_chain(gatekeeper: Gatekeeper) -> list[Gate]:
    return [gatekeeper.refresh_token, gatekeeper.refresh_session]


def login_chain(gatekeeper: Gatekeeper) -> list[Gate]:
    return [gatekeeper.local_credentials]
