"""Configuration package."""

from gcadmin.config.settings import (
    AppSettings,
    BackupSettings,
    RelaySettings,
    Settings,
    StoreSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "BackupSettings",
    "RelaySettings",
    "Settings",
    "StoreSettings",
    "get_settings",
    "validate_all_settings",
]
