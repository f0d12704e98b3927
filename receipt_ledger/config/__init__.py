"""Configuration package."""

from receipt_ledger.config.settings import (
    AppSettings,
    CropperSettings,
    GeminiSettings,
    LedgerApiSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "CropperSettings",
    "GeminiSettings",
    "LedgerApiSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
