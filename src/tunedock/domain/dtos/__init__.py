"""
Standard Data Transfer Objects for the tunedock provider host.

Hey future me – these DTOs are the LINGUA FRANCA between providers and the app!
Providers are independently authored scripts, so their output is plain data
(dicts/lists) with no schema guarantee. Every `from_provider()` here is the ONE
place that turns that loose output into typed DTOs.

Rules:
1. Only `id` + `platform` + one display field are guaranteed on an item.
   Everything else is Optional and the app must cope with None.
2. `platform` is stamped by the HOST, never trusted from provider output
   (except for imports, where a missing platform is filled in).
3. Items without an `id` are dropped - they can't be routed back to a provider.
4. `is_end` is tri-state: True, False, or None (provider didn't say).
   Aggregation treats ONLY an explicit False as "more pages".

Flow: Provider output (dict) → DTO (normalized) → Host/Aggregation → API schema
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class MediaType(str, Enum):
    """Media types a provider search can target."""

    MUSIC = "music"
    ALBUM = "album"
    ARTIST = "artist"
    SHEET = "sheet"
    LYRIC = "lyric"


# Keys we lift into typed fields. Everything else lands in `extra`.
_ITEM_FIELDS = ("id", "platform", "title", "artist", "album", "artwork", "url", "duration")
# Display/artwork aliases providers commonly use (artists have "name"/"avatar").
_TITLE_ALIASES = ("title", "name")
_ARTWORK_ALIASES = ("artwork", "avatar", "cover")


def _get(raw: Any, key: str, default: Any = None) -> Any:
    """Read a key from a mapping or an attribute from an object."""
    if isinstance(raw, Mapping):
        return raw.get(key, default)
    return getattr(raw, key, default)


def _first(raw: Any, keys: Iterable[str]) -> Any:
    for key in keys:
        value = _get(raw, key)
        if value not in (None, ""):
            return value
    return None


def _as_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _as_float(value: Any) -> float | None:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


def coerce_is_end(raw: Any) -> bool | None:
    """Extract the provider's own `is_end` signal.

    Only real booleans count. A provider that omits the field (or sends
    something that isn't a bool) is reported as None = "didn't say".
    """
    value = _get(raw, "is_end")
    return value if isinstance(value, bool) else None


def _iter_list(value: Any) -> list[Any]:
    if value is None or isinstance(value, (str, bytes, Mapping)):
        return []
    try:
        return list(value)
    except TypeError:
        return []


@dataclass
class MediaItem:
    """
    Minimal cross-provider shape for music, album, artist and sheet items.

    `extra` carries everything provider-specific; it's passed back to the
    provider untouched when the item is routed to it again.
    """

    id: str
    platform: str
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    artwork: str | None = None
    url: str | None = None
    duration: float | None = None
    media_type: MediaType = MediaType.MUSIC
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        """Best display string (falls back to the id)."""
        return self.title or self.id

    @property
    def key(self) -> tuple[str, str]:
        """Namespaced identity: items are unique per (id, platform)."""
        return (self.id, self.platform)

    @classmethod
    def from_provider(
        cls,
        raw: Any,
        platform: str,
        media_type: MediaType = MediaType.MUSIC,
        overwrite_platform: bool = True,
    ) -> "MediaItem | None":
        """Normalize one provider item.

        Args:
            raw: Provider output (dict, MediaItem or attribute object)
            platform: Platform of the provider that produced it
            media_type: Media type to tag the item with
            overwrite_platform: Stamp `platform` even if the provider set one

        Returns:
            MediaItem, or None if the item has no usable id
        """
        if isinstance(raw, MediaItem):
            if overwrite_platform or not raw.platform:
                return replace(raw, platform=platform)
            return raw

        item_id = _get(raw, "id")
        if item_id is None or item_id == "":
            return None

        if overwrite_platform:
            stamped = platform
        else:
            stamped = _as_str(_get(raw, "platform")) or platform

        extra: dict[str, Any] = {}
        if isinstance(raw, Mapping):
            skip = set(_ITEM_FIELDS) | set(_TITLE_ALIASES) | set(_ARTWORK_ALIASES)
            extra = {k: v for k, v in raw.items() if k not in skip}

        return cls(
            id=str(item_id),
            platform=stamped,
            title=_as_str(_first(raw, _TITLE_ALIASES)),
            artist=_as_str(_get(raw, "artist")),
            album=_as_str(_get(raw, "album")),
            artwork=_as_str(_first(raw, _ARTWORK_ALIASES)),
            url=_as_str(_get(raw, "url")),
            duration=_as_float(_get(raw, "duration")),
            media_type=media_type,
            extra=extra,
        )

    @classmethod
    def list_from_provider(
        cls,
        raw_items: Any,
        platform: str,
        media_type: MediaType = MediaType.MUSIC,
        overwrite_platform: bool = True,
    ) -> list["MediaItem"]:
        """Normalize a list of provider items, dropping unusable ones."""
        items: list[MediaItem] = []
        dropped = 0
        for raw in _iter_list(raw_items):
            item = cls.from_provider(raw, platform, media_type, overwrite_platform)
            if item is None:
                dropped += 1
                continue
            items.append(item)
        if dropped:
            logger.debug("[%s] dropped %d item(s) without id", platform, dropped)
        return items

    def to_provider_dict(self) -> dict[str, Any]:
        """Plain dict handed to provider code (extra fields merged back in)."""
        data: dict[str, Any] = dict(self.extra)
        data.update(
            {
                "id": self.id,
                "platform": self.platform,
                "title": self.title,
                "artist": self.artist,
                "album": self.album,
                "artwork": self.artwork,
                "url": self.url,
                "duration": self.duration,
            }
        )
        return data

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["media_type"] = self.media_type.value
        return data


@dataclass
class SearchResult:
    """One provider's page of search (or artist works / tag sheets) results."""

    data: list[MediaItem] = field(default_factory=list)
    is_end: bool | None = True

    @classmethod
    def empty(cls) -> "SearchResult":
        return cls(data=[], is_end=True)

    @classmethod
    def from_provider(
        cls, raw: Any, platform: str, media_type: MediaType = MediaType.MUSIC
    ) -> "SearchResult":
        if raw is None:
            return cls.empty()
        return cls(
            data=MediaItem.list_from_provider(_get(raw, "data"), platform, media_type),
            is_end=coerce_is_end(raw),
        )


@dataclass
class MediaSourceResult:
    """Playable source for a music item."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    user_agent: str | None = None
    quality: str | None = None

    @classmethod
    def from_provider(cls, raw: Any) -> "MediaSourceResult | None":
        if raw is None:
            return None
        if isinstance(raw, str):
            return cls(url=raw) if raw else None
        url = _get(raw, "url")
        if not url:
            return None
        headers = _get(raw, "headers") or {}
        return cls(
            url=str(url),
            headers={str(k): str(v) for k, v in dict(headers).items()},
            user_agent=_as_str(_get(raw, "user_agent")),
            quality=_as_str(_get(raw, "quality")),
        )


@dataclass
class LyricResult:
    """Raw lyric text (usually LRC) plus optional translation."""

    raw_text: str
    translation: str | None = None

    @classmethod
    def from_provider(cls, raw: Any) -> "LyricResult | None":
        if raw is None:
            return None
        if isinstance(raw, str):
            return cls(raw_text=raw) if raw else None
        raw_text = _get(raw, "raw_text")
        if not raw_text:
            return None
        return cls(raw_text=str(raw_text), translation=_as_str(_get(raw, "translation")))


@dataclass
class AlbumInfoResult:
    """Album details plus one page of its tracks."""

    album_item: MediaItem | None = None
    items: list[MediaItem] = field(default_factory=list)
    is_end: bool | None = True

    @classmethod
    def from_provider(cls, raw: Any, platform: str) -> "AlbumInfoResult | None":
        if raw is None:
            return None
        album_raw = _get(raw, "album_item")
        return cls(
            album_item=(
                MediaItem.from_provider(album_raw, platform, MediaType.ALBUM)
                if album_raw is not None
                else None
            ),
            items=MediaItem.list_from_provider(_get(raw, "items"), platform),
            is_end=coerce_is_end(raw),
        )


@dataclass
class SheetInfoResult:
    """Playlist (sheet) details plus one page of its tracks."""

    sheet_item: MediaItem | None = None
    items: list[MediaItem] = field(default_factory=list)
    is_end: bool | None = True

    @classmethod
    def from_provider(cls, raw: Any, platform: str) -> "SheetInfoResult | None":
        if raw is None:
            return None
        sheet_raw = _get(raw, "sheet_item")
        return cls(
            sheet_item=(
                MediaItem.from_provider(sheet_raw, platform, MediaType.SHEET)
                if sheet_raw is not None
                else None
            ),
            items=MediaItem.list_from_provider(_get(raw, "items"), platform),
            is_end=coerce_is_end(raw),
        )


@dataclass
class TopListDetailResult:
    """One page of a chart's tracks."""

    top_list_item: MediaItem | None = None
    items: list[MediaItem] = field(default_factory=list)
    is_end: bool | None = True

    @classmethod
    def from_provider(cls, raw: Any, platform: str) -> "TopListDetailResult | None":
        if raw is None:
            return None
        chart_raw = _get(raw, "top_list_item")
        return cls(
            top_list_item=(
                MediaItem.from_provider(chart_raw, platform, MediaType.SHEET)
                if chart_raw is not None
                else None
            ),
            items=MediaItem.list_from_provider(_get(raw, "items"), platform),
            is_end=coerce_is_end(raw),
        )


@dataclass
class ChartGroup:
    """A titled group of charts (top lists) from one provider."""

    title: str
    platform: str
    data: list[MediaItem] = field(default_factory=list)

    @classmethod
    def list_from_provider(cls, raw_groups: Any, platform: str) -> list["ChartGroup"]:
        groups: list[ChartGroup] = []
        for raw in _iter_list(raw_groups):
            groups.append(
                cls(
                    title=_as_str(_first(raw, _TITLE_ALIASES)) or "",
                    platform=platform,
                    data=MediaItem.list_from_provider(
                        _get(raw, "data"), platform, MediaType.SHEET
                    ),
                )
            )
        return groups


# Hey future me – tags are namespaced by (platform, id)! "Rock" from provider A and
# "Rock" from provider B are DIFFERENT tags and route to different providers.
@dataclass
class Tag:
    """A recommendation tag, owned by exactly one provider."""

    id: str
    platform: str
    title: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, str]:
        return (self.platform, self.id)

    @classmethod
    def from_provider(cls, raw: Any, platform: str) -> "Tag | None":
        if isinstance(raw, Tag):
            return replace(raw, platform=platform)
        tag_id = _get(raw, "id")
        if tag_id is None or tag_id == "":
            return None
        extra: dict[str, Any] = {}
        if isinstance(raw, Mapping):
            extra = {
                k: v for k, v in raw.items() if k not in ("id", "platform", *_TITLE_ALIASES)
            }
        return cls(
            id=str(tag_id),
            platform=platform,
            title=_as_str(_first(raw, _TITLE_ALIASES)),
            extra=extra,
        )

    @classmethod
    def list_from_provider(cls, raw_tags: Any, platform: str) -> list["Tag"]:
        tags = (cls.from_provider(raw, platform) for raw in _iter_list(raw_tags))
        return [tag for tag in tags if tag is not None]

    def to_provider_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update({"id": self.id, "platform": self.platform, "title": self.title})
        return data


@dataclass
class TagGroup:
    """A titled group of tags from one provider."""

    title: str
    platform: str
    data: list[Tag] = field(default_factory=list)


@dataclass
class RecommendTags:
    """One provider's pinned tags and tag groups."""

    platform: str
    pinned: list[Tag] = field(default_factory=list)
    groups: list[TagGroup] = field(default_factory=list)

    @classmethod
    def from_provider(cls, raw: Any, platform: str) -> "RecommendTags":
        if raw is None:
            return cls(platform=platform)
        groups = [
            TagGroup(
                title=_as_str(_first(group, _TITLE_ALIASES)) or "",
                platform=platform,
                data=Tag.list_from_provider(_get(group, "data"), platform),
            )
            for group in _iter_list(_get(raw, "groups"))
        ]
        return cls(
            platform=platform,
            pinned=Tag.list_from_provider(_get(raw, "pinned"), platform),
            groups=groups,
        )


# Hey future me – SearchPage is what the app renders: ONE merged page across providers.
# has_more follows the conservative rule: True iff some provider said is_end=False.
@dataclass
class SearchPage:
    """Merged, de-duplicated page of results from many providers."""

    data: list[MediaItem] = field(default_factory=list)
    has_more: bool = False
    page: int = 1
    sources: dict[str, int] = field(default_factory=dict)
    """Items contributed per platform (after de-duplication)."""

    failed: list[str] = field(default_factory=list)
    """Platforms whose call failed this round."""


@dataclass
class UserVariableDefinition:
    """Declarative form field a provider wants the user to fill in."""

    key: str
    name: str | None = None
    hint: str | None = None


@dataclass
class ProviderInfo:
    """Read model of one registry entry for listing/rendering."""

    platform: str
    version: str
    hash: str
    enabled: bool
    order: int
    builtin: bool
    state: str
    author: str | None = None
    src_url: str | None = None
    source_path: str | None = None
    error_reason: str | None = None
    capabilities: list[str] = field(default_factory=list)
    supported_search_type: list[str] | None = None
    user_variable_definitions: list[UserVariableDefinition] = field(
        default_factory=list
    )
    user_variables: dict[str, str] = field(default_factory=dict)


__all__ = [
    "AlbumInfoResult",
    "ChartGroup",
    "LyricResult",
    "MediaItem",
    "MediaSourceResult",
    "MediaType",
    "ProviderInfo",
    "RecommendTags",
    "SearchPage",
    "SearchResult",
    "SheetInfoResult",
    "Tag",
    "TagGroup",
    "TopListDetailResult",
    "UserVariableDefinition",
    "coerce_is_end",
]
