"""Reporting engine configuration loaded from environment variables."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables with REPORTING_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="REPORTING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    debug: bool = False

    # Scheduling
    max_parallel_reports: int = Field(default=1, ge=1)
    pump_interval_seconds: float = Field(default=30.0, gt=0)

    # Retention (0 disables automatic deletion)
    delete_reports_age_in_hours: int = Field(default=72, ge=0)
    sweep_interval_seconds: float = Field(default=3600.0, gt=0)

    # History store; None keeps history in memory.
    database_url: str | None = None
    database_echo: bool = False

    # Logging
    log_level: str = "INFO"
    structured_logging: bool = False

    @property
    def retention_enabled(self) -> bool:
        return self.delete_reports_age_in_hours > 0


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment, with optional overrides for testing."""
    settings = Settings(**overrides)  # type: ignore[arg-type]

    if settings.debug:
        logger.info(
            "Loaded reporting settings: max_parallel=%d retention_hours=%d",
            settings.max_parallel_reports,
            settings.delete_reports_age_in_hours,
        )

    return settings
