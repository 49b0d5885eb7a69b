# testloop/core/settings.py
# Copyright (c) 2024 Brad Edwards
# Licensed under the MIT License - see LICENSE file for details

"""Loop defaults loaded from ``TESTLOOP_*`` environment variables."""

from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LoopSettings(BaseSettings):
    """Process-wide defaults for event loops."""

    model_config = SettingsConfigDict(
        env_prefix="TESTLOOP_",
        extra="ignore",
    )

    # Done items
    default_done_timeout_ms: int = Field(default=2000, gt=0)

    # Scheduling
    jitter_pct: int = Field(default=50, ge=0, le=100)
    wake_tolerance_ms: int = Field(default=2, ge=0)
    late_guard_warn_ms: int = Field(default=10, ge=0)
    seed: Optional[int] = None

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    log_dones: bool = False


_settings: Optional[LoopSettings] = None


def get_settings() -> LoopSettings:
    """Get or create the settings instance."""
    global _settings
    if _settings is None:
        _settings = LoopSettings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
