"""
Runtime configuration for set-sync, read from the environment (and .env).

Every tunable of the set queue, its stores and the API lives on Settings;
get_settings() returns one cached instance per process.

Usage:
    from backend.settings import Settings, get_settings

    settings = get_settings()
    settings.set_queue_db_path

    # Tests build their own, ignoring any .env file
    settings = Settings(environment="test", _env_file=None)
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENVIRONMENTS = ("development", "staging", "production", "test")


class Settings(BaseSettings):
    """Environment-backed settings; field names map to upper-case env vars."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Runtime -------------------------------------------------------------
    environment: str = Field(
        default="development",
        description=f"One of: {', '.join(ENVIRONMENTS)}",
    )
    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN; error reporting is off when unset",
    )

    # --- Supabase (remote store) ---------------------------------------------
    supabase_url: Optional[str] = Field(default=None, description="Supabase project URL")
    supabase_service_role_key: Optional[str] = Field(
        default=None,
        description="Service role key, preferred when both keys are set",
    )
    supabase_anon_key: Optional[str] = Field(default=None, description="Anonymous key")
    sets_table: str = Field(default="sets", description="Table receiving queued set upserts")

    # --- Set operation queue -------------------------------------------------
    set_queue_store: Literal["sqlite", "memory"] = Field(
        default="sqlite",
        description="Backing store for queued set operations",
    )
    set_queue_db_path: str = Field(
        default="set_queue.db",
        description="SQLite file holding queued set operations",
    )
    set_queue_base_backoff_ms: float = Field(
        default=750,
        gt=0,
        description="Retry delay after the first retryable failure (ms)",
    )
    set_queue_max_backoff_ms: float = Field(
        default=60_000,
        gt=0,
        description="Retry delay ceiling (ms)",
    )

    # --- Background drain ----------------------------------------------------
    sync_background_drain_enabled: bool = Field(
        default=False,
        description="Run a background drain loop for the set queue",
    )
    sync_drain_idle_interval_s: float = Field(
        default=30.0,
        gt=0,
        description="Longest sleep between drain passes (seconds)",
    )

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        normalized = value.lower()
        if normalized not in ENVIRONMENTS:
            raise ValueError(f"Invalid environment '{value}'. Must be one of: {ENVIRONMENTS}")
        return normalized

    @model_validator(mode="after")
    def check_backoff_window(self) -> "Settings":
        if self.set_queue_base_backoff_ms > self.set_queue_max_backoff_ms:
            raise ValueError(
                f"set_queue_base_backoff_ms ({self.set_queue_base_backoff_ms}) cannot exceed "
                f"set_queue_max_backoff_ms ({self.set_queue_max_backoff_ms})"
            )
        return self

    @property
    def supabase_key(self) -> Optional[str]:
        return self.supabase_service_role_key or self.supabase_anon_key

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


@lru_cache
def get_settings() -> Settings:
    """Process-wide Settings; call get_settings.cache_clear() to reload."""
    return Settings()
