"""Configuration package."""

from budget_ledger.config.settings import (
    AppSettings,
    CloudinarySettings,
    GoogleSheetsSettings,
    RemoteApiSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CloudinarySettings",
    "GoogleSheetsSettings",
    "RemoteApiSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
