"""Configuration management for the time clock payroll engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv


def _optional_decimal(value: str | None) -> Decimal | None:
    if value is None or value.strip() == "":
        return None
    return Decimal(value)


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    engine_version: str
    log_level: str
    default_timezone: str

    # Business-level overtime defaults
    regular_hours_per_week: Decimal
    overtime_multiplier: Decimal
    double_time_multiplier: Decimal
    double_time_threshold_hours: Decimal | None

    summary_merge_max_retries: int

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./timeclock.db",
            ),
            engine_version=os.getenv("ENGINE_VERSION", "1.0.0"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            default_timezone=os.getenv("DEFAULT_TIMEZONE", "UTC"),
            regular_hours_per_week=Decimal(os.getenv("REGULAR_HOURS_PER_WEEK", "40")),
            overtime_multiplier=Decimal(os.getenv("OVERTIME_MULTIPLIER", "1.5")),
            double_time_multiplier=Decimal(os.getenv("DOUBLE_TIME_MULTIPLIER", "2.0")),
            double_time_threshold_hours=_optional_decimal(
                os.getenv("DOUBLE_TIME_THRESHOLD_HOURS")
            ),
            summary_merge_max_retries=int(os.getenv("SUMMARY_MERGE_MAX_RETRIES", "5")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
