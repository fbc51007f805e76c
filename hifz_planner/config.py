"""
Configuration settings for hifz-planner.

Uses Pydantic Settings for environment variable management with .env file support.
All variables are prefixed with HIFZ_ (e.g. HIFZ_DB_PATH, HIFZ_LOG_LEVEL).
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HIFZ_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Storage
    # ========================================
    db_path: Path = Field(
        default=Path.home() / ".hifz" / "state.db",
        description="SQLite database holding config, items and the backlog queue",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Minimum loguru level written to stderr by the CLI",
    )

    # ========================================
    # Progression Defaults
    # ========================================
    default_unit_type: str = Field(
        default="page",
        description="Unit memorized per day: page, verse, hizb or juz",
    )
    default_total_units: int = Field(
        default=30,
        ge=1,
        description="Number of units in a progression (one per day)",
    )
    default_morning_hour: int = Field(
        default=6,
        ge=0,
        le=23,
        description="Hour before which today's tasks stay hidden",
    )
    default_evening_hour: int = Field(
        default=20,
        ge=0,
        le=23,
        description="Hour from which the evening repetition is expected",
    )

    # ========================================
    # Schedule Engine
    # ========================================
    schedule_cache_size: int = Field(
        default=50,
        ge=1,
        description="Maximum memoized daily schedules per engine (FIFO eviction)",
    )

    # ========================================
    # Backlog Redistribution
    # ========================================
    backlog_daily_capacity: int = Field(
        default=10,
        ge=1,
        description="Soft ceiling of catch-up reviews placed on one day",
    )
    backlog_spread_options: str = Field(
        default="3,5,7",
        description="Comma-separated spread lengths offered to the user (days)",
    )
    backlog_default_spread_days: int = Field(
        default=5,
        ge=1,
        description="Spread used when the user does not pick one",
    )
    backlog_overdue_threshold_days: int = Field(
        default=1,
        ge=1,
        description="Days a review must be overdue before a spread is offered",
    )
    backlog_min_overdue_count: int = Field(
        default=1,
        ge=1,
        description="Overdue reviews past the threshold needed to offer a spread",
    )

    def get_spread_options(self) -> list[int]:
        """Parse the spread options into a sorted list of positive day counts."""
        options = []
        for raw in self.backlog_spread_options.split(","):
            raw = raw.strip()
            if raw.isdigit() and int(raw) > 0:
                options.append(int(raw))
        return sorted(set(options)) or [self.backlog_default_spread_days]

    def get_progression_defaults(self) -> dict[str, Any]:
        """Get defaults applied to missing progression config fields."""
        return {
            "unit_type": self.default_unit_type,
            "total_units": self.default_total_units,
            "morning_hour": self.default_morning_hour,
            "evening_hour": self.default_evening_hour,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
