"""Configuration settings for the business-day engine."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatSettings(BaseSettings):
    """Flat settings for simple environment variable configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Back-office API
    backoffice_api_url: str = Field(
        default="http://localhost:3001", validation_alias="BACKOFFICE_API_URL"
    )
    backoffice_username: str | None = Field(
        default=None, validation_alias="BACKOFFICE_USERNAME"
    )
    backoffice_password: SecretStr | None = Field(
        default=None, validation_alias="BACKOFFICE_PASSWORD"
    )
    backoffice_timeout: float = Field(default=30.0, validation_alias="BACKOFFICE_TIMEOUT")
    backoffice_max_retries: int = Field(
        default=3, validation_alias="BACKOFFICE_MAX_RETRIES"
    )

    # Business day scheduling
    business_timezone: str = Field(
        default="Europe/Berlin", validation_alias="BUSINESS_TIMEZONE"
    )
    scheduler_tick_seconds: float = Field(
        default=60.0, validation_alias="SCHEDULER_TICK_SECONDS"
    )
    settings_cache_ttl_seconds: float = Field(
        default=60.0, validation_alias="SETTINGS_CACHE_TTL_SECONDS"
    )
    close_dedup_seconds: float = Field(default=60.0, validation_alias="CLOSE_DEDUP_SECONDS")
    default_business_day_time: str = Field(
        default="06:00", validation_alias="DEFAULT_BUSINESS_DAY_TIME"
    )

    # Closing attribution
    system_username: str = Field(default="system", validation_alias="SYSTEM_USERNAME")
    admin_role: str = Field(default="Admin", validation_alias="ADMIN_ROLE")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", validation_alias="LOG_LEVEL"
    )
    log_format: Literal["json", "console"] = Field(
        default="console", validation_alias="LOG_FORMAT"
    )


@lru_cache
def get_settings() -> FlatSettings:
    """Get cached settings instance."""
    return FlatSettings()
