"""
Storefront configuration using pydantic-settings.

All settings can be overridden via environment variables or a .env file.
"""

from datetime import timedelta
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


# Project root is two levels above this file: backend/storefront/config.py -> project root
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Configuration for the storefront session/auth layer."""

    model_config = SettingsConfigDict(
        env_file=str(_PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ---------- Session signing ----------
    SESSION_SECRET_KEY: str  # required, no default
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = 12

    # ---------- Session cookie ----------
    SESSION_COOKIE_NAME: str = "storefront_session"
    SESSION_TIMEOUT_MINUTES: int = 15
    COOKIE_SECURE: Optional[bool] = None  # None -> follow the request scheme

    # ---------- Access policy ----------
    LOGIN_PATH: str = "/users/login"
    PUBLIC_PATHS: List[str] = ["/", "/users/login", "/users/register", "/health"]
    PUBLIC_PREFIXES: List[str] = [
        "/users/password-forgot",
        "/users/password-reset/",
        "/users/email-verify/",
        "/static/",
    ]

    # ---------- CORS ----------
    ALLOWED_ORIGINS: List[str] = ["*"]

    # ---------- Database ----------
    DATABASE_URL: Optional[str] = None
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "storefront"
    DB_PASSWORD: str = "storefront"
    DB_NAME: str = "storefront"
    STORE_TIMEOUT_SECS: int = 5

    @property
    def database_url(self) -> str:
        """Return ``DATABASE_URL`` if set, else a PostgreSQL URL for psycopg2."""
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+psycopg2://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    @property
    def session_timeout(self) -> timedelta:
        return timedelta(minutes=self.SESSION_TIMEOUT_MINUTES)


@lru_cache()
def get_settings() -> Settings:
    """Return a cached Settings instance (read once, reused everywhere)."""
    return Settings()
