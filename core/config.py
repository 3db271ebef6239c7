"""
Core configuration using Pydantic Settings.
Loads from environment variables.
"""

from functools import lru_cache
from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # App
    app_name: str = Field(default="talentsift", alias="APP_NAME")
    app_env: Literal["development", "staging", "production", "test"] = Field(
        default="development", alias="APP_ENV"
    )
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )

    # API
    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        alias="ALLOWED_ORIGINS",
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./talentsift.db", alias="DATABASE_URL"
    )
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    # Redis (rate limiting only)
    redis_url: str | None = Field(default=None, alias="REDIS_URL")

    # Gemini
    google_api_key: str | None = Field(default=None, alias="GOOGLE_API_KEY")
    gemini_model: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL")
    ai_temperature: float = Field(default=0.3, alias="AI_TEMPERATURE")
    ai_requests_per_second: float = Field(default=1.0, alias="AI_REQUESTS_PER_SECOND")
    ai_burst: int = Field(default=1, alias="AI_BURST")
    ai_max_concurrency: int = Field(default=3, alias="AI_MAX_CONCURRENCY")
    ai_timeout_seconds: float = Field(default=60.0, alias="AI_TIMEOUT_SECONDS")

    # Auth
    jwt_secret_key: str = Field(
        default="change-me-in-production-at-least-32-chars", alias="JWT_SECRET_KEY"
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_audience: str | None = Field(default=None, alias="JWT_AUDIENCE")

    # RBAC
    role_cache_ttl_seconds: float = Field(default=30.0, alias="ROLE_CACHE_TTL_SECONDS")

    # Shortlisting
    shortlist_threshold: int = Field(default=50, ge=0, le=100, alias="SHORTLIST_THRESHOLD")

    # Logging
    log_request_body: bool = Field(default=False, alias="LOG_REQUEST_BODY")
    log_max_body_size: int = Field(default=1024, alias="LOG_MAX_BODY_SIZE")
    json_logs: bool = Field(default=True, alias="JSON_LOGS")

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=False, alias="RATE_LIMIT_ENABLED")
    rate_limit_per_minute: int = Field(default=100, alias="RATE_LIMIT_PER_MINUTE")
    ai_rate_limit_per_minute: int = Field(default=10, alias="AI_RATE_LIMIT_PER_MINUTE")


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()
