"""Configuration management for the dispatch service."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = Field(default="Restaurant Order Dispatch", description="Display name")
    app_version: str = Field(default="0.1.0", description="Application version")

    # Redis Configuration
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis URL")
    storage_timeout: float = Field(
        default=5.0, gt=0, description="Socket timeout for storage calls in seconds"
    )
    transaction_retries: int = Field(
        default=5, ge=1, description="Attempts for an optimistic storage transaction"
    )

    # API Configuration
    api_port: int = Field(default=8000, description="API server port")
    api_host: str = Field(default="0.0.0.0", description="API server host")
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development"
    )
    debug: bool = Field(default=False, description="Expose error details in responses")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "text"] = Field(default="json", description="Log format")

    # Security
    secret_key: str = Field(..., description="Secret key for JWT signing")
    token_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    access_token_expire_minutes: int = Field(
        default=7 * 24 * 60, description="Access token expiration in minutes"
    )
    password_hash_rounds: int = Field(default=12, ge=4, le=31, description="bcrypt cost factor")

    # Dispatch Settings
    default_delivery_time: int = Field(
        default=30, ge=1, description="Partner delivery estimate in minutes"
    )
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=100, ge=1)

    # Notifications
    notification_send_timeout: float = Field(
        default=2.0, gt=0, description="Per-connection push timeout in seconds"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
