"""Configuration package."""

from taxledger.config.settings import (
    AppSettings,
    ExchangeRateSettings,
    LedgerSettings,
    MaintenanceSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ExchangeRateSettings",
    "LedgerSettings",
    "MaintenanceSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
