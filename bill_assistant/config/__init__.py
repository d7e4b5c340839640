"""Configuration package."""

from bill_assistant.config.settings import (
    AppSettings,
    ChatContextSettings,
    CloudinarySettings,
    GeminiSettings,
    GoogleSheetsSettings,
    RedisSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "ChatContextSettings",
    "CloudinarySettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "RedisSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
