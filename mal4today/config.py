"""Runtime settings loaded from environment variables.

Every setting can be overridden with a MAL4TODAY_* environment variable or a
.env file; CLI flags take precedence over both. Nothing is written back.
"""
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import constants


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MAL4TODAY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = Field(
        default=constants.MAL_DOMAIN,
        description="MyAnimeList base URL",
    )
    user_agent: str = Field(
        default=constants.DEFAULT_USER_AGENT,
        description="User-Agent header sent with every request",
    )

    # Timeouts and retries
    request_timeout: float = Field(
        default=constants.DEFAULT_TIMEOUT,
        gt=0,
        description="Seconds allowed for a single HTTP attempt",
    )
    run_timeout: Optional[float] = Field(
        default=constants.DEFAULT_RUN_TIMEOUT,
        gt=0,
        description="Seconds allowed for resolving all details pages",
    )
    retry_attempts: int = Field(
        default=constants.DEFAULT_RETRY_ATTEMPTS,
        ge=1,
        description="Attempts per request for transient failures",
    )
    retry_backoff: float = Field(
        default=constants.DEFAULT_RETRY_BACKOFF,
        ge=0,
        description="Exponential backoff multiplier in seconds",
    )
    max_concurrency: int = Field(
        default=constants.DEFAULT_CONCURRENCY,
        ge=1,
        le=constants.MAX_CONCURRENCY,
        description="Details pages fetched concurrently",
    )

    # MAL specifics
    list_status: int = Field(
        default=constants.LIST_STATUS_WATCHING,
        description="List status filter (1 = currently watching)",
    )
    broadcast_timezone: str = Field(
        default=constants.DEFAULT_BROADCAST_TIMEZONE,
        description="Timezone of broadcast times on details pages",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Returns the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
