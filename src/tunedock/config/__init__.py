"""Configuration module for tunedock."""

from .settings import (
    DatabaseSettings,
    ObservabilitySettings,
    ProviderSettings,
    Settings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "ObservabilitySettings",
    "ProviderSettings",
    "Settings",
    "get_settings",
]
