"""Configuration package."""

from fintrack.config.settings import (
    AppSettings,
    DynamoDBSettings,
    RepositorySettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "DynamoDBSettings",
    "RepositorySettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
