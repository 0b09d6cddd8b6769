"""Provider loading, storage and registry."""

from tunedock.infrastructure.providers.loader import (
    LoadOutcome,
    ProviderLoader,
    compute_source_hash,
)
from tunedock.infrastructure.providers.registry import (
    InstallResult,
    OperationResult,
    ProviderRegistry,
    RegistryEntry,
    RegistryEvent,
)
from tunedock.infrastructure.providers.storage import ProviderStorage

__all__ = [
    "InstallResult",
    "LoadOutcome",
    "OperationResult",
    "ProviderLoader",
    "ProviderRegistry",
    "ProviderStorage",
    "RegistryEntry",
    "RegistryEvent",
    "compute_source_hash",
]
