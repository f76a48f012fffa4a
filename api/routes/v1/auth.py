"""
api/routes/v1/auth.py -- Session endpoints.

Routes:
  POST /api/v1/auth/login    -- email/password -> token pair + user summary
  POST /api/v1/auth/refresh  -- refresh token -> rotated token pair
  POST /api/v1/auth/logout   -- ends the session (requires access token)
  GET  /api/v1/auth/profile  -- identity from the access gate (requires access token)

Every route is gated before its handler runs:
  login   -> login_chain   (pydantic validation first, then credentials)
  refresh -> refresh_chain (signature/expiry -> 401, stored hash -> 403)
  logout, profile -> access_chain (Depends(require_access_token))

Handlers only call AuthService with the context the gates produced.

Security:
  Login failures carry one generic message whether the email is unknown or
  the password is wrong, to avoid account enumeration.
  Cache-Control: no-store on every response that carries tokens.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    RefreshRequest,
    TokenResponse,
    UserOut,
)
from auth.dependencies import require_access_token, run_chain
from auth.gates import login_chain, refresh_chain
from auth.models import AccessContext, RefreshContext, UserSummary
from auth.service import AuthService

LOGIN_SUCCESS = "Login successful."
REFRESH_SUCCESS = "Tokens refreshed."
LOGOUT_SUCCESS = "Logged out."

router = APIRouter()


# ---------------------------------------------------------------------------
# Body-reading gates
# ---------------------------------------------------------------------------


def require_local_credentials(request: Request, body: LoginRequest) -> UserSummary:
    """Run the credential gate on a validated login body."""
    return run_chain(request, login_chain, body.model_dump())


def require_refresh_token(request: Request, body: Optional[RefreshRequest] = None) -> RefreshContext:
    """Run the refresh gates. A missing body or token is a 401, not a 422."""
    return run_chain(request, refresh_chain, body.model_dump() if body is not None else {})


def _service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _no_store(content: dict) -> JSONResponse:
    resp = JSONResponse(status_code=200, content=content)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints (gated by credentials / refresh token)
# ---------------------------------------------------------------------------


@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, user: UserSummary = Depends(require_local_credentials)) -> JSONResponse:
    """Start a session and return a fresh token pair."""
    result = _service(request).login(user)
    return _no_store(
        LoginResponse(
            message=LOGIN_SUCCESS,
            user=UserOut(id=result.user.id, email=result.user.email, name=result.user.name),
            access_token=result.tokens.access_token,
            refresh_token=result.tokens.refresh_token,
            expires_in=result.tokens.expires_in,
        ).model_dump()
    )


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: Request, ctx: RefreshContext = Depends(require_refresh_token)) -> JSONResponse:
    """Rotate the refresh token. The presented token stops working immediately."""
    tokens = _service(request).refresh(ctx.user_id, ctx.refresh_token)
    return _no_store(
        TokenResponse(
            message=REFRESH_SUCCESS,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_in=tokens.expires_in,
        ).model_dump()
    )


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, ctx: AccessContext = Depends(require_access_token)) -> MessageResponse:
    """End the caller's session. Succeeds whether or not a session was active."""
    _service(request).logout(ctx.user_id)
    return MessageResponse(message=LOGOUT_SUCCESS)


@router.get("/auth/profile", response_model=ProfileResponse)
def profile(ctx: AccessContext = Depends(require_access_token)) -> ProfileResponse:
    """Return the identity the access gate attached. No store read."""
    return ProfileResponse(user_id=ctx.user_id, email=ctx.email, name=ctx.name)
