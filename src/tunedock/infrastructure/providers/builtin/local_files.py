"""
Built-in `local` provider - music files from a directory on this machine.

Hey future me – this is always present and can't be removed. It scans
`providers.local_library_path` once (lazily, off the event loop) and keeps an
in-memory index. Call `rescan()` after the folder changed.

Tags come from mutagen (easy mode so ID3/MP4/Vorbis all look like
{"title": [...], "artist": [...]}). Files without tags still show up with the
filename as title - a missing tag must never hide a file.

Items come back from clients, so every path they carry is resolved and must
stay under the library folder; anything else is answered with None.
"""

import asyncio
import hashlib
import logging
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from mutagen import File as MutagenFile  # type: ignore[attr-defined]

from tunedock.domain.ports.provider import BaseProvider

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = frozenset(
    {".mp3", ".m4a", ".aac", ".ogg", ".opus", ".flac", ".wav", ".wma", ".alac", ".aiff"}
)
LYRIC_EXTENSION = ".lrc"
PAGE_SIZE = 50


def _first_tag(tags: Any, key: str) -> str | None:
    if not tags or key not in tags:
        return None
    value = tags[key]
    if isinstance(value, list):
        value = value[0] if value else None
    return str(value) if value else None


def _file_id(path: Path) -> str:
    return hashlib.md5(str(path.resolve()).encode("utf-8")).hexdigest()


def _confine(path: Path, root: Path) -> Path | None:
    # resolve() follows symlinks, so a link pointing out of the library is rejected too
    resolved = path.resolve()
    if not resolved.is_relative_to(root.resolve()):
        logger.warning("Refusing path outside the local library: %s", path)
        return None
    return resolved if resolved.is_file() else None


def _local_path(item: Any) -> Path | None:
    """Where the file behind an item lives (`local_path`, else a file:// url)."""
    if not isinstance(item, dict):
        return None
    raw = item.get("local_path") or item.get("url")
    if not raw:
        return None
    raw = str(raw)
    if raw.startswith("file://"):
        raw = unquote(urlparse(raw).path)
    return Path(raw)


class LocalFilesProvider(BaseProvider):
    """Searches and plays audio files from the local library folder."""

    platform = "local"
    version = "1.0.0"
    author = "tunedock"
    supported_search_type = ["music"]
    default_search_type = "music"
    cache_control = "no-store"

    def __init__(self, library_path: Path | None = None) -> None:
        self._library_path = Path(library_path) if library_path else None
        self._index: list[dict[str, Any]] | None = None
        self._index_lock = asyncio.Lock()

    # === Capabilities ===

    async def search(self, query: str, page: int, media_type: str) -> dict[str, Any]:
        if media_type != "music":
            return {"is_end": True, "data": []}
        index = await self._get_index()
        needle = query.strip().lower()
        matches = [
            item
            for item in index
            if not needle
            or any(
                needle in str(item.get(field) or "").lower()
                for field in ("title", "artist", "album", "filename")
            )
        ]
        start = max(page - 1, 0) * PAGE_SIZE
        data = matches[start : start + PAGE_SIZE]
        return {"is_end": start + PAGE_SIZE >= len(matches), "data": data}

    async def get_media_source(self, item: dict[str, Any], quality: str) -> dict[str, Any] | None:
        path = await self._library_file(_local_path(item))
        if path is None:
            return None
        return {"url": path.as_uri(), "quality": quality}

    async def get_music_info(self, item: dict[str, Any]) -> dict[str, Any] | None:
        path = await self._library_file(_local_path(item))
        if path is None:
            return None
        return await asyncio.to_thread(self._read_file, path)

    async def get_lyric(self, item: dict[str, Any]) -> dict[str, Any] | None:
        """Lyrics from a sidecar `<name>.lrc` next to the audio file."""
        path = _local_path(item)
        if path is None or not path.name:
            return None
        lrc = await self._library_file(path.with_suffix(LYRIC_EXTENSION))
        if lrc is None:
            return None
        text = await asyncio.to_thread(lrc.read_text, encoding="utf-8", errors="replace")
        return {"raw_text": text} if text.strip() else None

    async def import_single_item(self, url_like: str) -> dict[str, Any] | None:
        path = _local_path({"local_path": url_like})
        if path is None or path.suffix.lower() not in AUDIO_EXTENSIONS:
            return None
        path = await self._library_file(path)
        if path is None:
            return None
        return await asyncio.to_thread(self._read_file, path)

    # === Index ===

    async def rescan(self) -> int:
        """Rebuild the library index. Returns the number of files found."""
        async with self._index_lock:
            self._index = await asyncio.to_thread(self._scan)
            return len(self._index)

    async def _get_index(self) -> list[dict[str, Any]]:
        if self._index is None:
            await self.rescan()
        return self._index or []

    async def _library_file(self, path: Path | None) -> Path | None:
        """Resolved regular file inside the library folder, else None."""
        if path is None or self._library_path is None:
            return None
        return await asyncio.to_thread(_confine, path, self._library_path)

    def _scan(self) -> list[dict[str, Any]]:
        if self._library_path is None or not self._library_path.is_dir():
            return []
        items = []
        for path in sorted(self._library_path.rglob("*")):
            if path.is_file() and path.suffix.lower() in AUDIO_EXTENSIONS:
                items.append(self._read_file(path))
        logger.info("Local library scanned: %d audio files in %s", len(items), self._library_path)
        return items

    def _read_file(self, path: Path) -> dict[str, Any]:
        """Item dict for one file. Tag errors fall back to filename-only data."""
        item: dict[str, Any] = {
            "id": _file_id(path),
            "title": path.stem,
            "artist": None,
            "album": None,
            "duration": None,
            "url": path.resolve().as_uri(),
            "local_path": str(path),
            "filename": path.name,
        }
        try:
            audio = MutagenFile(path, easy=True)
        except Exception as e:
            logger.debug("Could not read tags from %s: %s", path, e)
            return item
        if audio is None:
            return item

        if getattr(audio, "info", None) is not None and getattr(audio.info, "length", None):
            item["duration"] = float(audio.info.length)
        tags = getattr(audio, "tags", None)
        item["title"] = _first_tag(tags, "title") or path.stem
        item["artist"] = _first_tag(tags, "artist")
        item["album"] = _first_tag(tags, "album")
        return item
