"""Domain ports (interfaces) for dependency inversion."""

from tunedock.domain.ports.config_store import IConfigStore
from tunedock.domain.ports.provider import (
    BaseProvider,
    CacheControl,
    LoadState,
    ProviderCapability,
    ProviderIdentity,
    ProviderMethod,
    ProviderUnit,
)

__all__ = [
    "BaseProvider",
    "CacheControl",
    "IConfigStore",
    "LoadState",
    "ProviderCapability",
    "ProviderIdentity",
    "ProviderMethod",
    "ProviderUnit",
]
