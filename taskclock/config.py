"""Runtime configuration for TaskClock."""

from __future__ import annotations

from functools import lru_cache
import logging
from pathlib import Path
import re

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_USER_ID = re.compile(r"[A-Za-z0-9_\-.]{1,64}")


def default_data_dir() -> Path:
    return Path(__file__).resolve().parent / "data"


class TaskClockSettings(BaseSettings):
    """Settings sourced from TASKCLOCK_* environment variables and an optional .env file."""

    model_config = SettingsConfigDict(
        env_prefix="TASKCLOCK_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    data_dir: Path = Field(default_factory=default_data_dir)
    default_user: str = "default"
    journal_mode: str = "MEMORY"
    tick_seconds: float = 60.0
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8765
    dev_url: str | None = None

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError("TASKCLOCK_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG")
        return normalized

    @field_validator("journal_mode")
    @classmethod
    def _normalize_journal_mode(cls, value: str) -> str:
        return value.strip().upper() or "MEMORY"

    @field_validator("tick_seconds")
    @classmethod
    def _validate_tick_seconds(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("TASKCLOCK_TICK_SECONDS must be > 0")
        return value

    @field_validator("default_user")
    @classmethod
    def _validate_default_user(cls, value: str) -> str:
        if not is_valid_user_id(value):
            raise ValueError("TASKCLOCK_DEFAULT_USER may only contain letters, digits, '_', '-' and '.'")
        return value

    @field_validator("dev_url")
    @classmethod
    def _blank_dev_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


def is_valid_user_id(value: str) -> bool:
    return bool(_USER_ID.fullmatch(value)) and value not in {".", ".."}


def configure_logging(level: str) -> None:
    """Configure root logging for TaskClock."""

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


@lru_cache(maxsize=1)
def get_settings() -> TaskClockSettings:
    """Return cached settings instance."""

    settings = TaskClockSettings()
    settings.data_dir = settings.data_dir.expanduser().resolve()
    return settings


__all__ = ["TaskClockSettings", "configure_logging", "default_data_dir", "get_settings", "is_valid_user_id"]
