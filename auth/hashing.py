"""
auth/hashing.py -- Credential hasher: bcrypt for passwords and refresh tokens.

Security design decisions:
  bcrypt directly (no passlib wrapper). passlib's internal wrap-bug detection
      creates a password longer than 72 bytes, which bcrypt 4.x rejects with an
      explicit error. Direct bcrypt usage is simpler and actively maintained.

  Fixed work factor of 10 rounds. Every password check and every refresh costs
      one bcrypt run, so the factor trades brute-force cost against login and
      refresh latency.

  Refresh tokens are reduced to their SHA-256 hex digest before bcrypt sees
      them. bcrypt only reads the first 72 bytes of input, and two JWTs for the
      same user share their header and the start of their payload, so hashing
      the raw token would make every refresh token of a user verify against
      every other one.

  Verification fails closed: a malformed stored hash or a library error is
      logged and reported as "no match", never raised to the caller.

  _DUMMY_HASH enables timing equalization in verify_password_or_dummy() so
      response time does not reveal whether an email exists.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import hashlib
import logging

import bcrypt

from auth.errors import HashingFailure

logger = logging.getLogger("sessionauth.auth")

_ROUNDS = 10


def _hash(secret: bytes) -> str:
    try:
        return bcrypt.hashpw(secret, bcrypt.gensalt(rounds=_ROUNDS)).decode("utf-8")
    except (ValueError, TypeError) as exc:
        raise HashingFailure("bcrypt could not hash the supplied value") from exc


def _verify(secret: bytes, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(secret, hashed.encode("utf-8"))
    except (ValueError, TypeError):
        logger.warning("bcrypt verification failed on a malformed stored hash; treating as mismatch")
        return False


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    Passwords longer than 72 bytes are rejected by bcrypt and surface as
    HashingFailure. The login request model caps the length well below that.
    """
    return _hash(plain.encode("utf-8"))


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    return _verify(plain.encode("utf-8"), hashed)


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("sessionauth_timing_dummy")


def verify_password_or_dummy(plain: str, hashed: str | None) -> bool:
    """Verify against hashed, or burn one bcrypt run and return False if None.

    Unknown email and wrong password then cost the same, which prevents email
    enumeration via response-time differences.
    """
    if hashed is None:
        _verify(plain.encode("utf-8"), _DUMMY_HASH)
        return False
    return verify_password(plain, hashed)


# ---------------------------------------------------------------------------
# Refresh tokens
# ---------------------------------------------------------------------------


def _token_digest(token: str) -> bytes:
    return hashlib.sha256(token.encode("utf-8")).hexdigest().encode("ascii")


def hash_refresh_token(token: str) -> str:
    """Return the bcrypt hash stored as a user's active-session marker."""
    return _hash(_token_digest(token))


def verify_refresh_token(token: str, hashed: str) -> bool:
    """Return True if token is the refresh token whose hash is stored."""
    return _verify(_token_digest(token), hashed)
