"""Centralized settings for the tierconf engine.

Uses pydantic-settings to load from environment variables (prefixed TIERCONF_)
with defaults suited to a single-process development deployment.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """tierconf settings loaded from environment variables."""

    # --- Persistence ---
    store_backend: str = "memory"  # "memory" or "sql"
    database_url: str = "sqlite:///tierconf.db"

    # --- Cache ---
    cache_backend: str = "memory"  # "memory" or "redis"
    redis_url: str = "redis://localhost:6379/0"
    cache_namespace: str = "tierconf"
    cache_ttl_seconds: int = 300
    cache_max_entries: int = 10_000
    negative_cache_enabled: bool = True

    # --- Encryption (fixed key + IV per deployment) ---
    encryption_key: Optional[str] = None
    encryption_iv: Optional[str] = None  # 32 hex chars; derived from the key when unset

    # --- Resilience ---
    read_retry_attempts: int = 3
    read_retry_backoff_seconds: float = 0.05
    read_retry_max_backoff_seconds: float = 1.0
    call_timeout_seconds: Optional[float] = None
    batch_max_workers: int = 8

    # --- Audit ---
    change_history_limit: int = 100

    # --- SYSTEM tier source ---
    system_env_prefix: str = "TIERCONF_SYS_"

    # --- Logging ---
    log_level: str = "INFO"
    log_format: str = "json"

    model_config = {
        "env_prefix": "TIERCONF_",
        "env_file": ".env",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton."""
    return Settings()
