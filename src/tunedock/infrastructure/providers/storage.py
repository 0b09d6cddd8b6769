"""On-disk storage of installed provider source files.

Files are named after their install hash (`<hash[:16]>.py`) so the stored copy
of a source maps back to exactly one hash when the directory is re-enumerated
at startup. All file I/O runs via asyncio.to_thread to keep the event loop free.
"""

import asyncio
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

PROVIDER_FILE_SUFFIX = ".py"
HASH_PREFIX_LENGTH = 16


class ProviderStorage:
    """Provider source directory."""

    def __init__(self, provider_dir: Path) -> None:
        self._dir = Path(provider_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, install_hash: str) -> Path:
        return self._dir / f"{install_hash[:HASH_PREFIX_LENGTH]}{PROVIDER_FILE_SUFFIX}"

    async def list_files(self) -> list[Path]:
        """Provider files sorted by name (deterministic load order)."""

        def _list() -> list[Path]:
            if not self._dir.is_dir():
                return []
            return sorted(
                p for p in self._dir.iterdir()
                if p.is_file() and p.suffix == PROVIDER_FILE_SUFFIX
            )

        return await asyncio.to_thread(_list)

    async def read(self, path: Path) -> str:
        return await asyncio.to_thread(Path(path).read_text, encoding="utf-8")

    async def write(self, install_hash: str, source_text: str) -> Path:
        """Store a provider source under its hash.

        Raises:
            OSError: If the file can't be written
        """
        path = self.path_for(install_hash)

        def _write() -> None:
            self._dir.mkdir(parents=True, exist_ok=True)
            # Temp file + replace: the target is either the old file or the whole new one
            tmp = path.with_suffix(".tmp")
            tmp.write_text(source_text, encoding="utf-8")
            tmp.replace(path)

        await asyncio.to_thread(_write)
        return path

    async def delete(self, path: str | Path | None) -> None:
        """Delete a stored provider file. Missing files are ignored."""
        if not path:
            return
        target = Path(path)
        # Never touch files outside our directory (e.g. install_from_file originals)
        if target.resolve().parent != self._dir.resolve():
            return
        try:
            await asyncio.to_thread(target.unlink, missing_ok=True)
        except OSError as e:
            logger.warning("Failed to delete provider file %s: %s", target, e)
