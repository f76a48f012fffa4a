"""
api/main.py -- FastAPI application entry point for Session Auth.

Exposes the authentication core over HTTP: login, token refresh, logout and
profile under /api/v1/auth, plus an unauthenticated health check.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins

Lifespan handles startup (settings, credential store, token service, auth
service, gatekeeper) and shutdown (close DB connection) symmetrically.
Settings are loaded before the app object exists: a missing signing secret in
production mode fails the import, so the process never serves authenticated
routes without a key.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.audit import LoggingAuditSink
from auth.errors import AuthError, ConfigurationError
from auth.gates import Gatekeeper
from auth.service import AuthService
from auth.store import CredentialStore
from auth.tokens import TokenService
from core.config import get_settings

__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("sessionauth.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime.

    Startup order matters:
      1. Credential store -- the service and the gatekeeper both read it.
      2. Token service -- raises ConfigurationError if a secret is empty.
      3. Auth service and gatekeeper -- compose the two above.
    """
    logger.info("Session Auth API starting up")
    store = CredentialStore(db_url=_settings.auth_db_url)
    tokens = TokenService.from_settings(_settings)
    service = AuthService(store, tokens, audit=LoggingAuditSink())
    app.state.credential_store = store
    app.state.auth_service = service
    app.state.gatekeeper = Gatekeeper(service, store, tokens)
    logger.info("Auth initialized")

    yield

    app.state.credential_store.close()
    logger.info("Session Auth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Session Auth API",
    description="Credential login with rotating access/refresh JWT sessions.",
    version=__version__,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Every request passes through this coroutine before reaching any route
# handler. Only method, path, status, latency and client host are logged --
# never headers or bodies, which carry bearer tokens and passwords.
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _debug_detail(exc: Exception) -> str | None:
    """Internal detail for the envelope -- only ever in DEBUG mode."""
    return str(exc) if _settings.debug else None


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render the auth taxonomy: 401 / 403, or 500 for misconfiguration.

    ConfigurationError is logged at ERROR with its real message; the client
    only sees a generic one.
    """
    if isinstance(exc, ConfigurationError):
        logger.error("Authentication misconfigured on %s %s: %s", request.method, request.url.path, exc.message)
        message = "An unexpected error occurred."
        detail = _debug_detail(exc)
    else:
        message = exc.message
        detail = None
    response = JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=ErrorDetail(code=exc.code, message=message, detail=detail)).model_dump(),
    )
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    response.headers["Cache-Control"] = "no-store"
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body fails validation.

    Validation errors echo the offending input; for login that would be the
    password, so the detail is reduced to field locations and messages.
    """
    fields = [f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()]
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail="; ".join(fields),
            )
        ).model_dump(),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for routing-level HTTP errors (404, 405)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body
    outside DEBUG mode.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
                detail=_debug_detail(exc),
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and component status."""
    components = {"app": "ok"}
    try:
        request.app.state.credential_store.ping()
        components["database"] = "ok"
    except Exception:
        logger.exception("Health check: credential store unreachable")
        components["database"] = "error"
    return HealthResponse(version=__version__, components=components)
