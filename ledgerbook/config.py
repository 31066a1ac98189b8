"""
Service configuration.

Values come from the process environment first, then from a .env file in the
working directory, then from the defaults below. See .env.example for the
keys a deployment usually sets.

Derived values (the admin allow-list, the default input timezone) are parsed
once, when the settings load, and cached on the settings object.

Usage:
    from ledgerbook.config import settings
    settings.DATABASE_URL
"""

from datetime import datetime, timezone
from functools import cached_property

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the Ledger Books API.

    SECRET_KEY has no default; startup fails until it is set.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # --- Application ---
    APP_NAME: str = "Ledger Books API"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # --- Database ---
    # SQLite for local use; swap to a postgresql+asyncpg URL for production
    DATABASE_URL: str = "sqlite+aiosqlite:///./ledger.db"

    # --- Authentication ---
    # REQUIRED: no default, so a real secret must be set
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # --- Authorization ---
    # Comma-separated emails that are granted admin rights, e.g.
    # ADMIN_EMAILS="ops@example.com,owner@example.com"
    ADMIN_EMAILS: str = ""

    # --- Ledger ---
    # Offset applied to transaction timestamps submitted without a zone.
    DEFAULT_INPUT_UTC_OFFSET: str = "+05:30"

    # When False, store/driver error messages are replaced with a generic
    # message in 500 responses.
    EXPOSE_INTERNAL_ERRORS: bool = False

    # --- CORS ---
    # Origins allowed to make cross-origin requests (frontend URLs)
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    def model_post_init(self, __context) -> None:
        # Parse derived values at load so a bad offset fails at startup
        self.admin_emails
        self.default_input_tz

    @cached_property
    def admin_emails(self) -> frozenset[str]:
        """The admin allow-list, lower-cased and parsed once."""
        return frozenset(
            email.strip().lower()
            for email in self.ADMIN_EMAILS.split(",")
            if email.strip()
        )

    @cached_property
    def default_input_tz(self) -> timezone:
        """DEFAULT_INPUT_UTC_OFFSET as a fixed-offset tzinfo."""
        parsed = datetime.strptime(self.DEFAULT_INPUT_UTC_OFFSET.strip(), "%z")
        return parsed.tzinfo


# Singleton: import this instance everywhere instead of creating new Settings()
settings = Settings()
