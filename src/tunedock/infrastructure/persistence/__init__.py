"""Persistence layer: database session management and provider config storage."""

from tunedock.infrastructure.persistence.config_store import (
    CONFIG_KEY_PREFIX,
    InMemoryConfigStore,
    ProviderConfig,
    ProviderConfigRepository,
    SqlConfigStore,
    config_key,
)
from tunedock.infrastructure.persistence.database import Database

__all__ = [
    "CONFIG_KEY_PREFIX",
    "Database",
    "InMemoryConfigStore",
    "ProviderConfig",
    "ProviderConfigRepository",
    "SqlConfigStore",
    "config_key",
]
