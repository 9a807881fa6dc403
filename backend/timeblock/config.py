from __future__ import annotations

import os
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "Timeblock"
    environment: str = "development"
    host: str = os.getenv("TT_HOST", "127.0.0.1")
    port: int = int(os.getenv("TT_PORT", "8080"))

    sqlite_path: Path = Path(os.getenv("TT_SQLITE_PATH", "./data/timeblock.db"))
    documents_dir: Path = Path(os.getenv("TT_DOCUMENTS_DIR", "./data/documents"))
    tracker_fence: str = os.getenv("TT_TRACKER_FENCE", "time-tracker")

    timezone: str = os.getenv("TZ", "UTC")

    timestamp_format: str = os.getenv("TT_TIMESTAMP_FORMAT", "%y-%m-%d %H:%M:%S")
    editable_timestamp_format: str = os.getenv("TT_EDITABLE_TIMESTAMP_FORMAT", "%Y-%m-%d %H:%M:%S")
    csv_delimiter: str = os.getenv("TT_CSV_DELIMITER", ",")
    fine_grained_durations: bool = os.getenv("TT_FINE_GRAINED_DURATIONS", "true").lower() == "true"
    reverse_segment_order: bool = os.getenv("TT_REVERSE_SEGMENT_ORDER", "false").lower() == "true"
    timestamp_durations: bool = os.getenv("TT_TIMESTAMP_DURATIONS", "false").lower() == "true"
    show_today: bool = os.getenv("TT_SHOW_TODAY", "false").lower() == "true"
    display_refresh_seconds: int = int(os.getenv("TT_DISPLAY_REFRESH_SECONDS", "1"))

    @field_validator("csv_delimiter", mode="before")
    @classmethod
    def _unescape_delimiter(cls, value: str) -> str:
        if value == "\\t":
            return "\t"
        return value or ","

    @field_validator("display_refresh_seconds")
    @classmethod
    def _positive_refresh(cls, value: int) -> int:
        return max(1, value)


settings = Settings()

# Ensure essential directories exist
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
settings.documents_dir.mkdir(parents=True, exist_ok=True)
