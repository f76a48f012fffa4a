"""
auth/errors.py -- Error taxonomy for the authentication core.

Every failure the core surfaces to a caller is one of the AuthError subclasses
below. Each carries the HTTP status and machine-readable code the API layer
renders, so route handlers never translate errors by hand. api/main.py
registers a single exception handler for AuthError.

TokenInvalid and HashingFailure are internal: the verifier and the hasher
raise them, and the gates / service convert them into the public taxonomy
(Unauthorized, AccessDenied) before anything reaches a client.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for client-visible authentication failures."""

    status_code: int = 401
    code: str = "unauthorized"
    default_message: str = "Authentication required."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    """Wrong email or password. The message never says which one."""

    status_code = 401
    code = "invalid_credentials"
    default_message = "Invalid email or password."


class Unauthorized(AuthError):
    """Missing, malformed or expired token, or the identity no longer exists."""

    status_code = 401
    code = "unauthorized"
    default_message = "Authentication required."


class AccessDenied(AuthError):
    """Token is structurally valid but does not match the active session."""

    status_code = 403
    code = "access_denied"
    default_message = "Access denied."


class ConfigurationError(AuthError):
    """Server-side secrets or TTLs are missing or invalid.

    The message is for logs only. The API handler replaces it with a generic
    message before responding.
    """

    status_code = 500
    code = "configuration_error"
    default_message = "Authentication is misconfigured."


class TokenInvalid(Exception):
    """Raised by the token verifier. reason is safe to log (never the token)."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class HashingFailure(Exception):
    """The bcrypt library failed while producing a hash."""
