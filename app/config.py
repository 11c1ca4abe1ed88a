"""Application configuration loaded from config.yaml + environment variables."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings

_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"


def _load_yaml() -> dict:
    if _CONFIG_PATH.exists():
        with open(_CONFIG_PATH) as f:
            return yaml.safe_load(f) or {}
    return {}


_yaml = _load_yaml()


class CancellationConfig(BaseSettings):
    urgent_window_minutes: int = 5
    normal_window_minutes: int = 60


class RetryConfig(BaseSettings):
    max_attempts: int = 4
    base_delay: float = 0.05
    max_delay: float = 1.0


class WorkOrderConfig(BaseSettings):
    id_length: int = 6
    id_max_attempts: int = 10


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///data/jobpoints.db"
    log_level: str = "INFO"
    cancellation: CancellationConfig = Field(default_factory=CancellationConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    work_order: WorkOrderConfig = Field(default_factory=WorkOrderConfig)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    """Build Settings by merging YAML defaults with env overrides (built once)."""
    y = _yaml
    cancel = CancellationConfig(**y.get("cancellation", {}))
    retry = RetryConfig(**y.get("retry", {}))
    wo = WorkOrderConfig(**y.get("work_order", {}))
    db_url = y.get("database", {}).get("url", "sqlite+aiosqlite:///data/jobpoints.db")
    log_level = y.get("logging", {}).get("level", "INFO")
    return Settings(
        database_url=db_url,
        log_level=log_level,
        cancellation=cancel,
        retry=retry,
        work_order=wo,
    )
