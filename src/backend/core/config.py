"""
Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env file).
"""

from functools import lru_cache
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Surbate"
    APP_ENV: str = "development"
    DEBUG: bool = False
    SECRET_KEY: str = ""  # Required - loaded from environment

    # Pseudonymization salt for client IP addresses
    IP_SALT: str = "default-salt"

    @field_validator("SECRET_KEY")
    @classmethod
    def validate_required_secrets(cls, v: str, info: Any) -> str:
        """Validate that required secrets are set."""
        if not v:
            raise ValueError(f"{info.field_name} must be set in environment")
        return v

    # Public frontend (used to build shareable links)
    FRONTEND_URL: str = "http://localhost:3001"

    # Azure Cosmos DB
    AZURE_COSMOS_ENDPOINT: str | None = None
    AZURE_COSMOS_CONNECTION_STRING: str | None = None  # For local emulator only
    AZURE_COSMOS_DATABASE: str = "surbate"
    AZURE_COSMOS_DISABLE_SSL: bool = False

    # Optimistic concurrency: how many times a load/mutate/replace cycle is retried
    STORAGE_MAX_RETRIES: int = 5

    # Admin sessions
    ADMIN_TOKEN_EXPIRE_HOURS: int = 24
    ADMIN_PASSWORD_MIN_LENGTH: int = 4

    # CORS - stored as comma-separated string to avoid pydantic-settings JSON parsing issues
    CORS_ORIGINS: str = "http://localhost:3001"

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        import json

        try:
            return json.loads(self.CORS_ORIGINS)
        except json.JSONDecodeError:
            return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Response quality heuristics
    QUALITY_SECONDS_PER_ANSWER: float = 2.0
    QUALITY_TOO_FAST_PENALTY: int = 30
    QUALITY_SAME_CHOICE_MIN_ANSWERS: int = 4  # more than 3 choice answers
    QUALITY_SAME_CHOICE_PENALTY: int = 20
    QUALITY_MIN_TEXT_LENGTH: int = 5
    QUALITY_MINIMAL_TEXT_PENALTY: int = 15

    # Listing
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
