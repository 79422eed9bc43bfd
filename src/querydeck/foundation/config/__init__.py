"""Configuration management using pydantic-settings."""

from .settings import (
    HttpSettings,
    LoggingSettings,
    QuerydeckSettings,
    ResultsSettings,
    StreamSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "HttpSettings",
    "LoggingSettings",
    "QuerydeckSettings",
    "ResultsSettings",
    "StreamSettings",
    "clear_settings_cache",
    "get_settings",
]
