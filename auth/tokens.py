"""
auth/tokens.py -- JWT issuing and verification for access and refresh tokens.

Security design decisions:
  JWT: python-jose with HS256. Access tokens carry {sub, username} and are
       signed with JWT_ACCESS_SECRET. Refresh tokens carry {sub, username,
       tokenType: "refresh"} and are signed with the distinct
       JWT_REFRESH_SECRET. A leaked access secret therefore cannot forge
       long-lived refresh tokens, and vice versa.

  jti: every token carries a random jti. Without it two refresh tokens minted
       for the same user in the same second would be byte-identical, and
       rotation could not tell the old token from the new one.

  Verification raises TokenInvalid on any failure (bad signature, expired,
       wrong kind, missing claims). The gates turn that into a 401. The reason
       string never contains the token itself.

  TTLs: parsed from configuration on every issue. The access TTL must be an
       integer >= 10 seconds, the refresh TTL an integer >= 60 seconds and
       longer than the access TTL. Anything else is a ConfigurationError.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is the
kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ConfigurationError, TokenInvalid
from auth.models import ACCESS_TOKEN_KIND, REFRESH_TOKEN_KIND, TokenClaims

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("sessionauth.auth")

_ALGORITHM = "HS256"

MIN_ACCESS_TTL_SECONDS = 10
MIN_REFRESH_TTL_SECONDS = 60

# Claim carrying the token kind on refresh tokens. Access tokens omit it.
TOKEN_TYPE_CLAIM = "tokenType"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ttl(raw: str | int, name: str, minimum: int) -> int:
    try:
        seconds = int(str(raw).strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer number of seconds, got {raw!r}") from None
    if seconds < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum} seconds, got {seconds}")
    return seconds


class TokenService:
    """Token issuer and verifier.

    Usage:
        tokens = TokenService.from_settings(get_settings())
        access = tokens.issue_access_token("u1", "a@b.com")
        claims = tokens.verify_access_token(access)   # raises TokenInvalid

    clock is injectable so expiry can be exercised in tests without sleeping.
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: str | int = "3600",
        refresh_ttl: str | int = "604800",
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        if not access_secret:
            raise ConfigurationError("JWT_ACCESS_SECRET is not defined")
        if not refresh_secret:
            raise ConfigurationError("JWT_REFRESH_SECRET is not defined")
        self._access_secret = access_secret
        self._refresh_secret = refresh_secret
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl
        self._clock = clock or _utcnow

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenService:
        return cls(
            access_secret=settings.jwt_access_secret,
            refresh_secret=settings.jwt_refresh_secret,
            access_ttl=settings.jwt_access_expiration_time,
            refresh_ttl=settings.jwt_refresh_expiration_time,
        )

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def access_ttl_seconds(self) -> int:
        return _parse_ttl(self._access_ttl, "JWT_ACCESS_EXPIRATION_TIME", MIN_ACCESS_TTL_SECONDS)

    def refresh_ttl_seconds(self) -> int:
        refresh = _parse_ttl(self._refresh_ttl, "JWT_REFRESH_EXPIRATION_TIME", MIN_REFRESH_TTL_SECONDS)
        if refresh <= self.access_ttl_seconds():
            raise ConfigurationError("JWT_REFRESH_EXPIRATION_TIME must be longer than JWT_ACCESS_EXPIRATION_TIME")
        return refresh

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def _encode(self, claims: dict[str, Any], secret: str, ttl_seconds: int) -> str:
        now = self._clock()
        payload = {
            **claims,
            "iat": now,
            "exp": now + timedelta(seconds=ttl_seconds),
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(payload, secret, algorithm=_ALGORITHM)

    def issue_access_token(self, identity: str, email: str) -> str:
        """Encode a signed access JWT for identity, valid for the access TTL."""
        return self._encode(
            {"sub": identity, "username": email},
            self._access_secret,
            self.access_ttl_seconds(),
        )

    def issue_refresh_token(self, identity: str, email: str) -> str:
        """Encode a signed refresh JWT for identity, valid for the refresh TTL."""
        return self._encode(
            {"sub": identity, "username": email, TOKEN_TYPE_CLAIM: REFRESH_TOKEN_KIND},
            self._refresh_secret,
            self.refresh_ttl_seconds(),
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def _decode(self, token: str, secret: str) -> dict[str, Any]:
        if not token:
            raise TokenInvalid("empty token")
        try:
            return jwt.decode(token, secret, algorithms=[_ALGORITHM])
        except ExpiredSignatureError:
            raise TokenInvalid("expired") from None
        except JWTError as exc:
            raise TokenInvalid(f"rejected: {exc}") from None

    def verify_access_token(self, token: str) -> TokenClaims:
        """Verify signature, expiry and shape of an access token.

        Raises TokenInvalid on any failure. A refresh token is never accepted
        here, even if it were somehow signed with the access secret.
        """
        payload = self._decode(token, self._access_secret)
        if payload.get(TOKEN_TYPE_CLAIM) not in (None, ACCESS_TOKEN_KIND):
            raise TokenInvalid("wrong token kind")
        return _to_claims(payload, ACCESS_TOKEN_KIND)

    def verify_refresh_token(self, token: str) -> TokenClaims:
        """Verify signature, expiry, shape and kind of a refresh token."""
        payload = self._decode(token, self._refresh_secret)
        if payload.get(TOKEN_TYPE_CLAIM) != REFRESH_TOKEN_KIND:
            raise TokenInvalid("wrong token kind")
        return _to_claims(payload, REFRESH_TOKEN_KIND)


def _to_claims(payload: dict[str, Any], kind: str) -> TokenClaims:
    sub = payload.get("sub")
    email = payload.get("username")
    exp = payload.get("exp")
    iat = payload.get("iat")
    if not isinstance(sub, str) or not sub or not isinstance(email, str):
        raise TokenInvalid("missing identity claims")
    if not isinstance(exp, (int, float)) or not isinstance(iat, (int, float)):
        raise TokenInvalid("missing time claims")
    return TokenClaims(
        sub=sub,
        email=email,
        kind=kind,
        issued_at=datetime.fromtimestamp(iat, tz=timezone.utc),
        expires_at=datetime.fromtimestamp(exp, tz=timezone.utc),
        jti=payload.get("jti"),
    )
