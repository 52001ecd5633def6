"""Configuration module for the Virail client."""

from .api import ApiSettings
from .auth import AuthSettings
from .logging import LoggingSettings
from .settings import ConfigurationError, Settings, get_settings


__all__ = [
    "Settings",
    "get_settings",
    "ConfigurationError",
    "ApiSettings",
    "AuthSettings",
    "LoggingSettings",
]
