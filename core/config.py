"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for the portal happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. secret_key -> SECRET_KEY). Type coercion and validation are built in.

  @model_validator(mode="after"): DEBUG-conditional signing key policy. Dev
      mode generates keys with a warning, production mode refuses to start
      without them.

Security notes:
  Signing keys shorter than 32 chars are rejected outright. Access and refresh
  tokens are signed with different keys so one can never be replayed as the
  other even if the type claim check were bypassed.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
forum/, or mailer/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("gameportal.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'gameportal.db'}"


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
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
    # Empty string is the sentinel for "not configured".
    secret_key: str = ""
    refresh_secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    access_token_expire_seconds: int = 15 * 60
    refresh_token_expire_seconds: int = 30 * 24 * 3600
    password_reset_expire_seconds: int = 3600

    # ------------------------------------------------------------------
    # Avatars
    # ------------------------------------------------------------------

    upload_dir: str = "uploads"
    max_avatar_bytes: int = 1_000_000
    public_base_url: str = "http://localhost:3001"

    # ------------------------------------------------------------------
    # Mail (empty smtp_host disables delivery; messages are only logged)
    # ------------------------------------------------------------------

    smtp_host: str = ""
    smtp_port: int = 587
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = True
    mail_from: str = "noreply@localhost"

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    rate_limit_enabled: bool = True
    signup_rate_limit: str = "10/minute"
    signin_rate_limit: str = "10/minute"
    forgot_rate_limit: str = "5/minute"
    reset_rate_limit: str = "10/minute"
    allowed_hosts: list[str] = ["*"]
    cors_origins: list[str] = ["http://localhost:3000"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_keys(self) -> "Settings":
        """Enforce the signing key policy for both JWT keys.

        Dev mode (DEBUG=true): auto-generate random keys with a warning.
            Issued tokens will not survive a restart.

        Production mode: refuse to start if either key is missing.

        Both modes: reject keys shorter than 32 characters.
        """
        for field in ("secret_key", "refresh_secret_key"):
            value = getattr(self, field)
            if not value:
                if not self.debug:
                    raise ValueError(
                        f"{field.upper()} is required in production mode. "
                        "Set it in your environment or .env file. "
                        "To run in development mode, set DEBUG=true."
                    )
                value = secrets.token_hex(32)
                setattr(self, field, value)
                logger.warning("Using auto-generated %s. Tokens will not persist across restarts.", field.upper())
            if len(value) < 32:
                raise ValueError(f"{field.upper()} must be at least 32 characters.")
        if self.secret_key == self.refresh_secret_key:
            raise ValueError("SECRET_KEY and REFRESH_SECRET_KEY must differ.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
