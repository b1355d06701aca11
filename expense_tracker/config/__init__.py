"""Configuration package."""

from expense_tracker.config.settings import (
    AppSettings,
    CaptureSettings,
    DashboardSettings,
    GoogleSheetsSettings,
    ParserSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CaptureSettings",
    "DashboardSettings",
    "GoogleSheetsSettings",
    "ParserSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
