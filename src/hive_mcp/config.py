"""Configuration management for Hive MCP."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .layout import HiveLayout
from .storage.files import LockOptions

MERGE_STRATEGIES = ("merge", "squash", "rebase")


class HiveSettings(BaseSettings):
    """Runtime configuration sourced from environment variables and optional .env file."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    project_root: Path = Field(default=Path("."), validation_alias="HIVE_PROJECT_ROOT")
    hive_dir_name: str = Field(default=".hive", validation_alias="HIVE_DIR_NAME")
    git_path: str | None = Field(default=None, validation_alias="GIT_PATH")
    log_level: str = Field(default="INFO", validation_alias="HIVE_LOG_LEVEL")
    default_merge_strategy: str = Field(default="merge", validation_alias="HIVE_MERGE_STRATEGY")
    lock_timeout: float = Field(default=5.0, validation_alias="HIVE_LOCK_TIMEOUT")
    lock_retry_interval: float = Field(default=0.05, validation_alias="HIVE_LOCK_RETRY_INTERVAL")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}:
            raise ValueError(
                "HIVE_LOG_LEVEL must be one of CRITICAL, ERROR, WARNING, INFO, DEBUG"
            )
        return normalized

    @field_validator("default_merge_strategy")
    @classmethod
    def _validate_merge_strategy(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in MERGE_STRATEGIES:
            raise ValueError(f"HIVE_MERGE_STRATEGY must be one of {', '.join(MERGE_STRATEGIES)}")
        return normalized

    @field_validator("hive_dir_name")
    @classmethod
    def _validate_hive_dir_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized or "/" in normalized or "\\" in normalized:
            raise ValueError("HIVE_DIR_NAME must be a single directory name")
        return normalized

    @field_validator("lock_timeout", "lock_retry_interval")
    @classmethod
    def _validate_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Lock timings must be > 0 seconds")
        return value

    def layout(self) -> HiveLayout:
        return HiveLayout.for_project(self.project_root, self.hive_dir_name)

    def lock_options(self) -> LockOptions:
        return LockOptions(timeout=self.lock_timeout, retry_interval=self.lock_retry_interval)


@lru_cache(maxsize=1)
def get_settings() -> HiveSettings:
    """Return cached settings instance."""

    settings = HiveSettings()
    settings.project_root = settings.project_root.expanduser().resolve()
    return settings


__all__ = ["HiveSettings", "MERGE_STRATEGIES", "get_settings"]
