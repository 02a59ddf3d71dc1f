"""
Application configuration and settings management.

This module loads configuration from environment variables and provides
a centralized settings object for the entire application.
"""

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import (
    DEFAULT_APP_PORT,
    DEFAULT_QR_TOKEN_SECRET,
    JWT_EXPIRATION_HOURS,
    QR_TOKEN_TTL_MINUTES,
    RESERVATION_TTL_DAYS,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "PromoHub"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = Field(default="development", description="deployment environment")

    # API Server
    host: str = "0.0.0.0"
    port: int = DEFAULT_APP_PORT

    # Security
    jwt_secret: str = Field(default="development-secret-change-in-production")
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = JWT_EXPIRATION_HOURS
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000", "http://localhost:8000"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        """Parse CORS origins from string or list.

        Args:
            v: CORS origins as string (comma-separated) or list

        Returns:
            list[str]: List of CORS origin URLs
        """
        if isinstance(v, str):
            if not v.strip():
                return ["http://localhost:3000", "http://localhost:8000"]
            return [origin.strip() for origin in v.split(",")]
        return v

    # QR redemption tokens (the secret must never leave the server)
    qr_token_secret: str = Field(
        default=DEFAULT_QR_TOKEN_SECRET,
        description="HMAC key used to sign QR redemption tokens",
    )
    qr_token_ttl_minutes: int = Field(
        default=QR_TOKEN_TTL_MINUTES,
        gt=0,
        description="Minutes a QR token stays valid after signing",
    )

    # Reservations
    reservation_ttl_days: int = Field(default=RESERVATION_TTL_DAYS, gt=0)

    # Database Configuration
    # Managed Postgres (production)
    postgres_url: str | None = Field(default=None, description="Postgres connection URL")
    # Local development - uses SQLite in-memory by default for easy testing
    database_url: str = Field(
        default="sqlite:///:memory:",
        description="Database connection URL (PostgreSQL or SQLite)"
    )

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Alerting
    alert_webhook_url: str | None = Field(
        default=None,
        description="Webhook URL for security and failure alert notifications"
    )
    alert_enabled: bool = Field(
        default=True,
        description="Whether to enable alerting for critical failures"
    )

    @model_validator(mode="after")
    def check_production_secrets(self) -> "Settings":
        """Refuse to run in production with the development QR signing secret."""
        if self.is_production and self.qr_token_secret == DEFAULT_QR_TOKEN_SECRET:
            raise ValueError("QR_TOKEN_SECRET must be set in production")
        return self

    @property
    def effective_database_url(self) -> str:
        """Get the effective database URL with an async driver."""
        url = self.postgres_url or self.database_url
        if url.startswith("postgresql://"):
            return url.replace("postgresql://", "postgresql+asyncpg://", 1)
        if url.startswith("sqlite://"):
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        return url

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
