"""Application settings via Pydantic BaseSettings."""

from __future__ import annotations

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Database
    database_url: str = "sqlite+aiosqlite:///./mibuks.db"

    # App
    secret_key: str = "change-me-in-production"
    debug: bool = False
    log_level: str = "INFO"
    session_max_age: int = 86400

    # Auth (env-var based; if unset, development mode accepts any credentials)
    admin_username: str | None = None
    admin_password: str | None = None

    # Page access
    enforce_page_grants: bool = False

    # Lazily provisioned business defaults
    default_business_name: str = "My Business"
    default_business_type: str = "retail"
    default_currency: str = "SLL"


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    settings = Settings()
    if settings.secret_key == "change-me-in-production":  # nosec B105
        warnings.warn(
            "SECRET_KEY is using the insecure default. "
            "Set SECRET_KEY environment variable for production.",
            UserWarning,
            stacklevel=2,
        )
    return settings
