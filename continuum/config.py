"""
Configuration for the Continuum Learn app.

Settings come from ``CONTINUUM_*`` environment variables or a local ``.env`` file.
"""

import logging
from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from continuum.levels import DEFAULT_LEVELS_PATH
from continuum.theory import DEFAULT_THEORY_LEVELS_PATH


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    log_level: str = Field(default="INFO", description="Logging level")

    levels_path: Path = Field(
        default=DEFAULT_LEVELS_PATH,
        description="JSON table of practice levels",
    )
    theory_levels_path: Path = Field(
        default=DEFAULT_THEORY_LEVELS_PATH,
        description="JSON table of theory lessons",
    )
    progress_path: Path = Field(
        default=Path(".continuum_progress.json"),
        description="Where learner progress is saved",
    )

    display_samples_per_segment: int = Field(
        default=24, ge=1, le=200,
        description="Backbone samples per segment used for plotting",
    )
    workspace_samples: int = Field(
        default=1200, ge=10,
        description="Random parameter draws for the workspace envelope",
    )

    model_config = SettingsConfigDict(
        env_prefix="CONTINUUM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the settings instance.

    Returns:
        Settings: Application settings
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Reset the cached settings instance (useful for testing)."""
    global _settings
    _settings = None


def configure_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )
