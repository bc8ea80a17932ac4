"""
Configuration and settings for the presence service.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings for the FastAPI service."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    api_prefix: str = Field(default="/api")

    # Database (Postgres expected, any SQLAlchemy URL works). DATABASE_URL
    database_url: Optional[str] = Field(default=None)

    # Development toggles
    use_in_memory_backends: bool = Field(
        default=False,
        validation_alias=AliasChoices(
            "PRESENCE_USE_IN_MEMORY_BACKENDS", "use_in_memory_backends"
        ),
    )

    # Rollup refresh queue (Redis). REDIS_URL / REDIS_QUEUE_KEY
    redis_url: Optional[str] = Field(default=None)
    redis_queue_key: str = Field(default="presence:rollup-refresh")

    # Sync monitor. STUCK_THRESHOLD_MINUTES
    stuck_threshold_minutes: float = Field(default=30.0, gt=0)

    # Query limits
    default_page_size: int = Field(default=50, ge=1)
    max_page_size: int = Field(default=500, ge=1)
    max_batch_size: int = Field(default=200, ge=1)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
