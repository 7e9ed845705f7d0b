"""Dependency injection for FastAPI routes."""

from functools import lru_cache

from mnemo.config import Settings, get_settings
from mnemo.core.scheduler import SchedulingEngine
from mnemo.core.storage import Storage
from mnemo.io.container import ContainerReader, get_backend
from mnemo.log import configure_logging


@lru_cache
def get_storage() -> Storage:
    """Get the storage instance (singleton)."""
    settings: Settings = get_settings()
    configure_logging(settings.log_level)
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    return Storage(settings.db_path)


@lru_cache
def get_engine() -> SchedulingEngine:
    """Get the scheduling engine (singleton)."""
    return SchedulingEngine.from_settings(get_settings())


@lru_cache
def get_reader() -> ContainerReader:
    """Get the .apkg reader for the configured SQLite backend."""
    return ContainerReader(get_backend(get_settings().sqlite_backend))
