"""Built-in providers (always present, never removable)."""

from pathlib import Path
from typing import Any

from tunedock.infrastructure.providers.builtin.local_files import LocalFilesProvider
from tunedock.infrastructure.providers.builtin.sample import SampleProvider


def default_builtin_providers(local_library_path: Path | None = None) -> list[Any]:
    """Built-ins in the order they're listed."""
    return [LocalFilesProvider(local_library_path), SampleProvider()]


__all__ = ["LocalFilesProvider", "SampleProvider", "default_builtin_providers"]
