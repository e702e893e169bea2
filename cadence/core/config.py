"""
Application configuration using Pydantic Settings.

Values are read from environment variables or a local .env file.
"""

from datetime import date
from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "test"] = "local"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Database
    # ===========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./cadence.db"

    # ===========================================
    # Scanner
    # ===========================================
    # How often due definitions are scanned
    SCAN_INTERVAL_MINUTES: int = Field(15, ge=1)
    # Hour (UTC) of the daily maintenance pass
    MAINTENANCE_HOUR: int = Field(3, ge=0, le=23)
    SCAN_BATCH_SIZE: int = Field(100, ge=1)
    # Lease held by a scanner worker on a definition while generating
    CLAIM_TTL_SECONDS: int = Field(300, ge=1)
    WORKER_ID: str = "cadence-worker"

    # ===========================================
    # Recurrence rules
    # ===========================================
    SKIP_RESOLUTION_LIMIT: int = Field(100, ge=1)
    GENERATE_NOW_MAX_COUNT: int = Field(10, ge=1)
    # Holiday source for definitions with skip_holidays enabled:
    # "none" uses only HOLIDAY_DATES, "us_federal" adds US federal holidays.
    HOLIDAY_CALENDAR: Literal["none", "us_federal"] = "none"
    # Extra dates treated as holidays. With no source and no dates,
    # skip_holidays has no effect.
    HOLIDAY_DATES: List[date] = Field(default_factory=list)

    @property
    def is_test(self) -> bool:
        """Check if running under the test suite."""
        return self.ENVIRONMENT == "test"

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.ENVIRONMENT == "local"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
