"""Application settings and configuration schema."""

import os

from pydantic import BaseModel, Field


class MemorySettings(BaseModel):
    """Limits and defaults for the conversational memory engine."""
    max_entries_per_thread: int = 100
    retention_days: int = 30
    recency_window_days: int = 7
    default_limit: int = 10
    default_relevance_threshold: float = 0.3


class StorageCfg(BaseModel):
    """Durable storage configuration."""
    db_path: str = "data/cache/memory.db"


class LoggingCfg(BaseModel):
    """Structured logging configuration."""
    log_level: str = "INFO"
    json_logs: bool = True


class Settings(BaseModel):
    """Main application settings."""
    memory: MemorySettings = Field(default_factory=MemorySettings)
    storage: StorageCfg = Field(default_factory=StorageCfg)
    logging: LoggingCfg = Field(default_factory=LoggingCfg)


def load_settings() -> Settings:
    """Build settings, applying TUTOR_MEMORY_* environment overrides."""
    settings = Settings()

    db_path = os.environ.get("TUTOR_MEMORY_DB_PATH")
    if db_path:
        settings.storage.db_path = db_path

    log_level = os.environ.get("TUTOR_MEMORY_LOG_LEVEL")
    if log_level:
        settings.logging.log_level = log_level.upper()

    return settings
