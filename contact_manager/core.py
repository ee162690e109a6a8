"""Application configuration and settings management.

This module defines the application settings loaded from environment
variables and provides a helper for accessing the cached settings.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables.

    Attributes:
        DATABASE_URL: Database connection string.
        REDIS_URL: Redis connection URL for the session store.
        SESSION_COOKIE_NAME: Name of the cookie carrying the session id.
        SESSION_EXPIRE_MINUTES: Idle lifetime of a session in minutes.
        SESSION_COOKIE_SECURE: Send the session cookie over HTTPS only.
        BCRYPT_ROUNDS: Cost factor used when hashing passwords.
        DEFAULT_USERNAME: Username of the account seeded at startup.
        DEFAULT_PASSWORD: Password of the account seeded at startup.
        GEOCODER_URL: Base URL of the Nominatim geocoding service.
        GEOCODER_USER_AGENT: User agent sent to the geocoding service.
        GEOCODER_TIMEOUT: Geocoding request timeout in seconds.
        ALLOWED_ORIGINS: Allowed origins for CORS.
        LOG_LEVEL: Minimum level written by the log sink.
        PORT: Port used when the application is started directly.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="allow")

    DATABASE_URL: str = "sqlite:///./contacts.db"
    REDIS_URL: str = "redis://localhost:6379"
    SESSION_COOKIE_NAME: str = "contact_manager_session"
    SESSION_EXPIRE_MINUTES: int = 60 * 24
    SESSION_COOKIE_SECURE: bool = False
    BCRYPT_ROUNDS: int = 10
    DEFAULT_USERNAME: str = "rcnj"
    DEFAULT_PASSWORD: str = "password"
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org"
    GEOCODER_USER_AGENT: str = "Contact Manager App <contact@example.com>"
    GEOCODER_TIMEOUT: float = 10.0
    ALLOWED_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    PORT: int = 8080


@lru_cache()
def get_settings() -> Settings:
    """Return cached application settings.

    The settings object is cached to prevent reloading environment
    variables multiple times during application lifetime.
    """

    return Settings()
