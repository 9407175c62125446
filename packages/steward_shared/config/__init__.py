"""Typed configuration for Steward processes."""

from .loader import load_settings
from .models import (
    DEFAULT_CONFIG_PATH,
    ComponentsSettings,
    LoggingSettings,
    PostgresSettings,
    StewardSettings,
    resolve_component_settings,
)

__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ComponentsSettings",
    "LoggingSettings",
    "PostgresSettings",
    "StewardSettings",
    "load_settings",
    "resolve_component_settings",
]
