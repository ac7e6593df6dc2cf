"""Logging configuration loaded from ``LOG_*`` environment variables.

The log directory itself belongs to SyncSettings; this model only covers
sink levels, rotation and format.

Rules Applied:
    - #11 Pydantic Modeling: Settings management, strict types
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]


class LoggingConfig(BaseSettings):
    """Sink 설정 (LOG_ prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    console_level: LogLevel = "INFO"
    file_level: LogLevel = "DEBUG"
    rotation: str = Field(default="50 MB", description="e.g. '100 MB', '1 day'")
    retention: str = "7 days"
    compression: str = "gz"
    json_logs: bool = Field(default=False, description="Serialize file records as JSON lines")


def get_logging_config() -> LoggingConfig:
    return LoggingConfig()
