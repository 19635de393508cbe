"""Configuration management using pydantic-settings.

Supports environment variables and .env file loading.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration.

    Reason: Using pydantic-settings for type-safe config management,
    supporting environment variable override for different deployment environments.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),  # .env.local overrides .env
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "feedrefresh"
    log_level: str = "INFO"
    log_json: bool = False  # Set True in production for structured logs

    # Database
    db_path: Path = Field(
        default=Path("data/feedrefresh.db"),
        description="SQLite database path",
    )

    # Feeds
    feed_urls: list[str] = Field(
        default_factory=list,
        description="Feed URLs to refresh",
    )

    # HTTP
    http_timeout: int = 30
    user_agent: str = "feedrefresh/0.1"
    max_concurrent_downloads: int = Field(
        default=10,
        ge=1,
        description="Maximum simultaneous HTTP requests",
    )

    # Rate limiting
    rate_limited_hosts: list[str] = Field(
        default=["reddit.com"],
        description="Host substrings whose feeds are fetched in delayed batches",
    )
    rate_limit_batch_size: int = Field(default=100, ge=1)
    rate_limit_batch_delay: float = Field(
        default=601.0,
        ge=0,
        description="Seconds between batches (100 requests per 10 minutes)",
    )

    # Schedule
    refresh_interval_minutes: int = Field(default=30, ge=1)


# Global singleton instance
settings = Settings()
