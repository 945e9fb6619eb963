"""
core/config.py -- Runtime configuration for the pizza service (pydantic-settings).

Every environment read goes through Settings. Other modules call
get_settings() and never touch os.environ themselves.

Settings is a pydantic-settings BaseSettings: each field is filled from the
environment variable of the same name in upper case (SECRET_KEY,
DATABASE_URL, FACTORY_URL, ...) or from a .env file in the working
directory. get_settings() is wrapped in lru_cache, so the first call builds
the object and later calls share it; FastAPI handlers and the CLI read the
same instance.

Signing key policy (enforced by the after-validator):
  DEBUG=true and no SECRET_KEY   -> a random key is generated and a warning
                                    logged; credentials die with the process.
  DEBUG unset and no SECRET_KEY  -> startup fails.
  SECRET_KEY under 32 characters -> startup fails in either mode.

Credentials carry no expiry. Changing SECRET_KEY is the one way to void all
of them at once.

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
franchise/, or orders/.
"""

import logging
import secrets
from functools import lru_cache
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("jwtpizza.config")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'jwtpizza.db'}"


class Settings(BaseSettings):
    """Service configuration. Every field has a default except the signing key in production."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # ------------------------------------------------------------------
    # Signing and storage
    # ------------------------------------------------------------------

    debug: bool = False
    # "" means unset; validate_signing_key replaces it or refuses to start.
    secret_key: str = ""
    database_url: str = _DEFAULT_DB_URL

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]
    franchise_page_limit: int = 10
    order_page_limit: int = 10

    # ------------------------------------------------------------------
    # Order factory (external fulfilment service)
    # ------------------------------------------------------------------

    factory_url: str = "https://pizza-factory.cs329.click"
    factory_api_key: str = ""
    factory_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Bootstrap admin (optional -- empty email means no account is seeded)
    # ------------------------------------------------------------------

    admin_name: str = "pizza admin"
    admin_email: str = ""
    admin_password: str = ""

    # ------------------------------------------------------------------
    # Checks
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_signing_key(self) -> "Settings":
        if not self.secret_key:
            if not self.debug:
                raise ValueError(
                    "SECRET_KEY is not set. Export a random string of at least 32 "
                    "characters, or set DEBUG=true for a throwaway development key."
                )
            self.secret_key = secrets.token_hex(32)
            logger.warning("DEBUG: generated a throwaway SECRET_KEY; issued credentials end with this process.")
        if len(self.secret_key) < 32:
            raise ValueError(f"SECRET_KEY is {len(self.secret_key)} characters; 32 or more are required.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Build Settings on first use and share it afterwards.

    Tests that change the environment must call get_settings.cache_clear().
    """
    return Settings()
