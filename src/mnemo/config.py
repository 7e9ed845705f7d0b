"""Runtime configuration loaded from ``MNEMO_*`` environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Mnemo settings.

    Sources, highest priority first:
    1. Keyword arguments
    2. Environment variables (MNEMO_*)
    3. A ``.env`` file in the working directory
    """

    model_config = SettingsConfigDict(
        env_prefix="MNEMO_",
        env_file=".env",
        extra="ignore",
    )

    # Paths
    data_dir: Path = Field(default_factory=lambda: Path.cwd() / ".mnemo")

    # Scheduling
    desired_retention: float = Field(default=0.9, gt=0.0, lt=1.0)
    maximum_interval: int = Field(default=36500, ge=1)
    enable_fuzzing: bool = False
    strict_ratings: bool = False

    # Import
    sqlite_backend: Literal["auto", "memory", "file"] = "auto"

    log_level: str = "WARNING"

    @property
    def db_path(self) -> Path:
        return self.data_dir / "mnemo.db"


@lru_cache
def get_settings() -> Settings:
    """Get the process-wide settings (cached)."""
    return Settings()
