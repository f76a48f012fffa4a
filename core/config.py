"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for Session Auth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_access_secret -> JWT_ACCESS_SECRET). Type coercion and
      validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates missing signing secrets
      and logs each one at ERROR; production mode refuses to start without them.

Security notes:
  Two signing secrets: access tokens and refresh tokens are signed with
       different keys so a leaked access secret cannot mint refresh tokens.
       Identical values are rejected.

  Secrets shorter than 32 chars are rejected outright. HS256 signing relies on
       key entropy -- a short key weakens it.

  TTLs stay raw strings here. They are parsed and range-checked when a token
  is issued (auth/tokens.py) so a bad value surfaces as a ConfigurationError
  on the request that needs it, matching how the env var is documented.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("sessionauth.config")

_MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields except the two signing secrets have defaults. The secrets are
    only optional in dev mode (DEBUG=true), where the model_validator fills
    them in.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    auth_db_url: str = ""  # empty -> auth/store.py default SQLite file

    # ------------------------------------------------------------------
    # Token signing
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    jwt_access_secret: str = ""
    jwt_refresh_secret: str = ""
    jwt_access_expiration_time: str = "3600"
    jwt_refresh_expiration_time: str = "604800"

    # ------------------------------------------------------------------
    # HTTP boundary
    # ------------------------------------------------------------------

    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost", "testserver"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_secrets(self) -> "Settings":
        """Enforce the signing-secret policy.

        Dev mode (DEBUG=true): auto-generate any missing secret and log it at ERROR.
            Sessions will not survive restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing. Serving
            authenticated routes without a configured key is never acceptable.

        Both modes: reject secrets shorter than 32 characters and reject an
            access secret equal to the refresh secret.
        """
        for field in ("jwt_access_secret", "jwt_refresh_secret"):
            if getattr(self, field):
                continue
            env_name = field.upper()
            if not self.debug:
                raise ValueError(
                    f"{env_name} is required in production mode. "
                    f"Set {env_name} in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
            setattr(self, field, secrets.token_hex(32))
            logger.error(
                "%s is not set. Using an auto-generated secret because DEBUG=true; "
                "sessions will not persist across restarts. Never run this way in production.",
                env_name,
            )

        if len(self.jwt_access_secret) < _MIN_SECRET_LENGTH or len(self.jwt_refresh_secret) < _MIN_SECRET_LENGTH:
            raise ValueError(f"JWT signing secrets must be at least {_MIN_SECRET_LENGTH} characters.")
        if self.jwt_access_secret == self.jwt_refresh_secret:
            raise ValueError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    Uses lru_cache so Settings() is instantiated exactly once -- at first call.
    All modules should call get_settings() rather than constructing Settings()
    directly.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
