"""
Configuration settings for the quiz allocation engine.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///quizalloc.db",
        description="SQLAlchemy connection string for the question bank and allocations",
    )
    question_owner_id: str | None = Field(
        default=None,
        description="Restrict the question bank to a single owner (None = all owners)",
    )

    # ========================================
    # Allocation
    # ========================================
    default_exhaustion_policy: Literal["strict", "recycle", "best_effort"] = Field(
        default="strict",
        description="Policy applied when a quiz's pool cannot satisfy a quota",
    )
    max_allocation_retries: int = Field(
        default=3,
        ge=0,
        description="Fresh-snapshot retries after a question vanished mid-allocation",
    )
    lock_timeout_seconds: float | None = Field(
        default=30.0,
        description="Max wait for a quiz's allocation lock (None = wait forever)",
    )
    shuffle_allocations: bool = Field(
        default=True,
        description="Shuffle the final question order of every allocation",
    )
    sampling_seed: str | None = Field(
        default=None,
        description="Seed for reproducible sampling (None = system randomness)",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    def get_allocation_config(self) -> dict[str, object]:
        """Get allocation configuration as a dictionary."""
        return {
            "default_policy": self.default_exhaustion_policy,
            "max_retries": self.max_allocation_retries,
            "lock_timeout": self.lock_timeout_seconds,
            "shuffle": self.shuffle_allocations,
            "seeded": self.sampling_seed is not None,
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
