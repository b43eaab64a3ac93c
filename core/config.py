"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for chirpy-auth happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the official FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. jwt_secret -> JWT_SECRET). Type coercion and validation are built in.

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved from environment. Dev mode generates a signing secret with a
      warning, production mode refuses to start without one.

Security notes:
  JWT_SECRET shorter than 32 chars is rejected outright. HS256 signing relies
  on key entropy -- a short key makes offline brute-force of the secret
  practical.

  POLKA_KEY empty means the payments integration is disabled: every presented
  key is rejected by AuthPolicy.authorize_integration_key().

Layer rule: core/ is the kernel. This module may not import from auth/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("chirpy.config")

DEFAULT_DATABASE_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'chirpy_auth.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file. The model_validator enforces
    production-safety rules at startup.
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
    database_url: str = DEFAULT_DATABASE_URL

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured". The model_validator
    # below either generates a dev secret or raises, so callers never see "".
    jwt_secret: str = ""
    polka_key: str = ""

    access_token_expire_seconds: int = 3600
    refresh_token_expire_days: int = 60

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_jwt_secret(self) -> "Settings":
        """Enforce the JWT_SECRET policy.

        Dev mode (DEBUG=true): auto-generate a random secret with a warning.
            Access tokens will not survive a restart -- acceptable for local dev.

        Production mode: refuse to start if JWT_SECRET is missing.

        Both modes: reject secrets shorter than 32 characters.
        """
        if not self.jwt_secret:
            if self.debug:
                self.jwt_secret = secrets.token_hex(32)
                logger.warning("Using auto-generated JWT_SECRET. Access tokens will not persist across restarts.")
            else:
                raise ValueError(
                    "JWT_SECRET is required in production mode. "
                    "Set JWT_SECRET in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters.")
        if self.access_token_expire_seconds <= 0:
            raise ValueError("ACCESS_TOKEN_EXPIRE_SECONDS must be positive.")
        if self.refresh_token_expire_days <= 0:
            raise ValueError("REFRESH_TOKEN_EXPIRE_DAYS must be positive.")
        if not self.polka_key:
            logger.info("POLKA_KEY not set; payments webhook authorization will reject every key.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
