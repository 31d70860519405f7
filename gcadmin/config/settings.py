"""
Configuration Management for Giannicorp Admin

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what the store, the backup pipeline and the
webhook relay depend on, and everything is validated at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Local persistent store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GCADMIN_STORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    path: str = Field(
        default="data/gcadmin.db",
        description="Path to the SQLite database file"
    )
    connect_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How often to try opening the database before giving up"
    )


class BackupSettings(BaseSettings):
    """Backup/restore pipeline configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GCADMIN_BACKUP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_name: str = Field(
        default="Giannicorp Admin",
        description="Value written to the 'app' field of every snapshot"
    )
    format_version: str = Field(
        default="v1",
        description="Snapshot format tag written to the 'version' field"
    )
    indent: int = Field(
        default=2,
        ge=0,
        le=8,
        description="Indentation of exported snapshot JSON"
    )
    max_artifact_size_mb: int = Field(
        default=50,
        ge=1,
        le=1024,
        description="Largest snapshot file accepted for dry run or import"
    )
    export_dir: str = Field(
        default="backups",
        description="Default directory for exported snapshot files"
    )

    @property
    def max_artifact_size_bytes(self) -> int:
        """Get max artifact size in bytes."""
        return self.max_artifact_size_mb * 1024 * 1024


class RelaySettings(BaseSettings):
    """Webhook relay (customer requests/tickets inbox) configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GIANNICORP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    webhook_secret: str = Field(
        default="",
        description="Shared HMAC secret; empty disables signature checks"
    )
    cors_origins: str = Field(
        default="",
        description="Comma-separated list of allowed CORS origins (empty = all)"
    )
    db_path: str = Field(
        default="data/admin.db",
        description="Path to the relay's SQLite database"
    )
    host: str = Field(
        default="0.0.0.0",
        description="Interface the relay binds to"
    )
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port the relay listens on"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Get allowed origins as a list."""
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @field_validator('db_path')
    @classmethod
    def validate_db_path(cls, v: str) -> str:
        """Reject paths pointing at an existing directory."""
        if Path(v).is_dir():
            raise ValueError(f"Relay database path is a directory: {v}")
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def store(self) -> StoreSettings:
        return StoreSettings()

    @property
    def backup(self) -> BackupSettings:
        return BackupSettings()

    @property
    def relay(self) -> RelaySettings:
        return RelaySettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("store", "backup", "relay", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
