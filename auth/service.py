"""
auth/service.py -- Authentication service: login, refresh, logout.

Session model:
  An identity has an active session exactly while its credential record holds
  a non-null hashed_refresh_token. Login overwrites it (a second device login
  silently ends the first device's session), refresh rotates it, logout
  clears it.

  Unauthenticated --login--> Authenticated --refresh--> Authenticated
        ^                         |
        +------logout / rotated---+

Refresh rotation is a compare-and-swap on the stored hash: the new hash is
only written while the stored value still equals the hash the presented token
was verified against. Of two concurrent refreshes with the same token at most
one wins; the other is denied.

Error semantics (see auth/errors.py):
  validate_credentials -> InvalidCredentials (one message for unknown email,
      missing password and wrong password)
  issue_token_pair     -> Unauthorized (identity gone), ConfigurationError
  refresh              -> AccessDenied (no session, mismatch, lost race)
  logout               -> never fails for a missing session

Context passing: every method takes the identity it acts on as an argument.
Nothing is read from request-scoped globals, so unit tests drive the service
with plain values.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from auth.audit import AuditSink, email_domain, notify
from auth.errors import AccessDenied, InvalidCredentials, Unauthorized
from auth.hashing import hash_refresh_token, verify_password_or_dummy, verify_refresh_token
from auth.models import LoginResult, TokenPair, UserSummary
from auth.store import CredentialRepository
from auth.tokens import TokenService

logger = logging.getLogger("sessionauth.auth")


class AuthService:
    """Orchestrates the credential hasher, token service and credential store."""

    def __init__(
        self,
        store: CredentialRepository,
        tokens: TokenService,
        audit: AuditSink | None = None,
    ) -> None:
        self.store = store
        self.tokens = tokens
        self.audit = audit

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def validate_credentials(self, email: str, password: str) -> UserSummary:
        """Return the stripped user for a matching email/password pair.

        Always runs bcrypt, even when the email is unknown or has no password,
        so timing does not leak which accounts exist. Read-only.
        """
        record = self.store.get_by_email(email)
        stored_hash = record.password_hash if record is not None else None
        if not verify_password_or_dummy(password, stored_hash) or record is None:
            notify(self.audit, "login_failed", None, domain=email_domain(email))
            raise InvalidCredentials()
        return record.summary()

    # ------------------------------------------------------------------
    # Token pair
    # ------------------------------------------------------------------

    def issue_token_pair(self, user_id: str, email: str) -> TokenPair:
        """Mint a fresh access/refresh pair for an identity that still exists.

        Raises Unauthorized if the identity has been deleted, and
        ConfigurationError if the TTLs are unusable.
        """
        if self.store.get_by_id(user_id) is None:
            raise Unauthorized("User not found.")

        expires_in = self.tokens.access_ttl_seconds()
        return TokenPair(
            access_token=self.tokens.issue_access_token(user_id, email),
            refresh_token=self.tokens.issue_refresh_token(user_id, email),
            expires_in=expires_in,
        )

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, user: UserSummary) -> LoginResult:
        """Start a session for an already-validated user.

        Any previously stored refresh hash is overwritten, which invalidates
        the refresh token of an earlier session.
        """
        tokens = self.issue_token_pair(user.id, user.email)
        if not self.store.set_refresh_token_hash(user.id, hash_refresh_token(tokens.refresh_token)):
            raise Unauthorized("User not found.")
        logger.info("Session started for user %s", user.id)
        notify(self.audit, "login", user.id)
        return LoginResult(user=user, tokens=tokens)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, user_id: str, presented_refresh_token: str) -> TokenPair:
        """Rotate the session: verify the presented token, issue a new pair.

        After success the presented token is permanently unusable, even before
        its expiry.
        """
        record = self.store.get_by_id(user_id)
        if record is None or not record.has_active_session:
            notify(self.audit, "refresh_denied", user_id, reason="no_session")
            raise AccessDenied()

        validated_hash = record.hashed_refresh_token
        if not verify_refresh_token(presented_refresh_token, validated_hash):
            notify(self.audit, "refresh_denied", user_id, reason="mismatch")
            raise AccessDenied()

        tokens = self.issue_token_pair(str(record.id), record.email)
        rotated = self.store.set_refresh_token_hash(
            str(record.id),
            hash_refresh_token(tokens.refresh_token),
            expected=validated_hash,
        )
        if not rotated:
            logger.warning("Refresh for user %s lost a concurrent rotation; denying", user_id)
            notify(self.audit, "refresh_denied", user_id, reason="concurrent_rotation")
            raise AccessDenied()

        notify(self.audit, "token_refreshed", user_id)
        return tokens

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    def logout(self, user_id: str) -> None:
        """End the session for user_id. Idempotent."""
        self.store.set_refresh_token_hash(user_id, None)
        logger.info("Session ended for user %s", user_id)
        notify(self.audit, "logout", user_id)
