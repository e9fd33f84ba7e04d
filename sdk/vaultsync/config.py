"""
Configuration for VaultSync.

Uses pydantic-settings for environment variable loading. Every component
accepts an explicit Settings instance; get_settings() supplies the
process-wide default when none is injected.

Invariants:
    - All settings have sensible defaults for local development
    - Limits (name length, dedup window) are applied at mutation time

How to change safely:
    - Add new settings with defaults that keep existing behavior
    - Keep the VAULTSYNC_ prefix for every variable
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Client core configuration loaded from environment."""

    # Mutation limits
    name_max_length: int = Field(default=35, ge=1, description="Max vault/collection/asset name length")
    copy_suffix: str = Field(default=" (Copy)", description="Suffix appended to cloned names")

    # Optimistic engine
    temp_id_prefix: str = Field(default="temp_", min_length=1, description="Reserved prefix for provisional ids")
    dedup_window_seconds: float = Field(
        default=15.0,
        ge=0,
        description="Max created_at distance for heuristic duplicate collapse",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json, text)")

    model_config = {"env_prefix": "VAULTSYNC_"}

    @property
    def dedup_window_ms(self) -> int:
        """Dedup window in Unix milliseconds."""
        return int(self.dedup_window_seconds * 1000)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the default settings instance."""
    return Settings()
