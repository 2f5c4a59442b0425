"""
Application configuration module.

Provides centralized, environment-safe configuration management
with sensible defaults for local development.
"""

import logging
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables
    or a local ``.env`` file.

    Attributes:
        APP_NAME: Application name.
        ENVIRONMENT: development, testing or production.
        DATABASE_URL: SQLAlchemy connection string.
        SECRET_KEY: JWT signing key.
        TO_CENTS_FACTOR: Multiplier between currency units and stored cents.
        PORTAL_API_URL: Base URL used by the portal API client.
    """

    # Application metadata
    APP_NAME: str = "Cloud Portal API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./cloudportal.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # JWT
    SECRET_KEY: str = Field(default="change-me-in-production-at-least-32-chars")
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 15
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7
    ISSUER: str = "cloudportal"
    AUDIENCE: str = "cloudportal-users"

    # Account security
    MAX_LOGIN_ATTEMPTS: int = 5
    RATE_LIMIT_ENABLED: bool = True
    LOGIN_RATE_LIMIT: int = 10

    # CORS
    CORS_ORIGINS: str = "http://localhost:3000"
    CORS_ALLOW_CREDENTIALS: bool = True
    CORS_METHODS: str = "GET,POST,PUT,PATCH,DELETE,OPTIONS"
    CORS_HEADERS: str = "Authorization,Content-Type"

    # Wallet
    TO_CENTS_FACTOR: int = 100
    DEFAULT_CURRENCY: str = "ZAR"
    SIMULATE_PAYMENTS: bool = True

    # Outbound API client
    PORTAL_API_URL: str = "http://localhost:8003"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def cors_methods_list(self) -> list[str]:
        return [method.strip() for method in self.CORS_METHODS.split(",") if method.strip()]

    @property
    def cors_headers_list(self) -> list[str]:
        return [header.strip() for header in self.CORS_HEADERS.split(",") if header.strip()]

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Returns:
        Settings instance.
    """
    loaded = Settings()
    logger.info(f"Settings loaded: app_name={loaded.APP_NAME}, environment={loaded.ENVIRONMENT}")
    return loaded


settings = get_settings()
