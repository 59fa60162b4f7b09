"""
QueryTree Configuration

Centralized configuration using Pydantic Settings.
All configuration is loaded from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CombinerSettings(BaseSettings):
    """Query tree combination behaviour."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    # Identifier of the synthetic "match any" root holding every answer query;
    # reserved, stored queries must not use it
    combined_root_id: str = Field(
        default="combined", min_length=1, alias="QUERYTREE_COMBINED_ROOT_ID"
    )

    # Raise DataIntegrityError instead of skipping orphans/unresolved roots
    strict_integrity: bool = Field(default=False, alias="QUERYTREE_STRICT_INTEGRITY")


class StorageSettings(BaseSettings):
    """Storage configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    db_path: Path = Field(
        default=Path("~/.querytree/criteria.db"),
        alias="QUERYTREE_DB_PATH",
        validate_default=True,
    )

    @field_validator("db_path", mode="before")
    @classmethod
    def resolve_path(cls, v: str | Path) -> Path:
        """Resolve path and expand user."""
        return Path(v).expanduser().resolve()


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", env_prefix="", extra="ignore"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", alias="LOG_LEVEL"
    )


class Settings(BaseSettings):
    """
    Main QueryTree settings aggregator.

    Usage:
        from querytree.config import get_settings
        settings = get_settings()
        print(settings.combiner.combined_root_id)
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    combiner: CombinerSettings = Field(default_factory=CombinerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (useful for testing)."""
    global _settings
    _settings = None
