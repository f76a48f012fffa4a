"""
API request and response models for Session Auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Deliberately simple: one "@", no whitespace, a dot in the domain. Deliverability
# is not this layer's concern.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Validated before the credential gate runs. max_length on the password keeps
    input below bcrypt's 72-byte limit for typical characters. The password is
    passed through exactly as submitted; only the email is trimmed.
    """

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=72)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, value: Any) -> Any:
        """Trim surrounding whitespace before the pattern check runs."""
        return value.strip() if isinstance(value, str) else value


class RefreshRequest(BaseModel):
    """Request body for POST /api/v1/auth/refresh.

    refresh_token is untyped at the schema level so that a missing or
    malformed token is reported by the refresh gate as 401, not by validation
    as 422.
    """

    refresh_token: Optional[Any] = None


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserOut(BaseModel):
    """Public user fields. Never includes password or refresh-token hashes."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str


class LoginResponse(BaseModel):
    """Response for POST /api/v1/auth/login."""

    model_config = ConfigDict(frozen=True)

    message: str
    user: UserOut
    access_token: str
    refresh_token: str
    expires_in: int


class TokenResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh."""

    model_config = ConfigDict(frozen=True)

    message: str
    access_token: str
    refresh_token: str
    expires_in: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ProfileResponse(BaseModel):
    """Response for GET /api/v1/auth/profile -- the access gate's context."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    name: str


# ---------------------------------------------------------------------------
# Envelope and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
