"""
Provider Contract for tunedock.

Hey future me – this is the HEART of the provider architecture!
A provider is an independently authored unit for one data source. Only the
identity (`platform`) is required - EVERY capability method is optional.
Missing method = "this provider can't do that", NOT an error.

We never probe `hasattr(unit, "get_lyric")` at call sites. The loader computes
the capability set ONCE (frozenset of ProviderCapability) and stores it on the
ProviderUnit. Call sites ask `unit.has(ProviderCapability.GET_LYRIC)`.

Capability signatures (positional args, sync or async):
    search(query, page, media_type) -> {data: [...], is_end}
    get_media_source(item, quality) -> {url, headers?, user_agent?} | None
    get_music_info(item) -> partial item dict | None
    get_lyric(item) -> {raw_text, translation?} | None
    get_album_info(album, page) -> {album_item?, items: [...], is_end} | None
    get_sheet_info(sheet, page) -> {sheet_item?, items: [...], is_end} | None
    get_artist_works(artist, page, media_type) -> {data: [...], is_end}
    import_single_item(url_like) -> item dict | None
    import_sheet(url_like) -> [item dict, ...] | None
    get_top_lists() -> [{title, data: [...]}, ...]
    get_top_list_detail(chart, page) -> {items: [...], is_end}
    get_recommend_tags() -> {pinned: [...], groups: [{title, data: [...]}]}
    get_sheets_by_tag(tag, page) -> {data: [...], is_end}
"""

import asyncio
import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from tunedock.domain.dtos import MediaType, UserVariableDefinition


class LoadState(str, Enum):
    """Provider unit load state: LOADING -> MOUNTED | ERROR (terminal)."""

    LOADING = "loading"
    MOUNTED = "mounted"
    ERROR = "error"


class CacheControl(str, Enum):
    """Caching policy a provider declares for its items."""

    CACHE = "cache"
    NO_CACHE = "no-cache"
    NO_STORE = "no-store"


class ProviderCapability(str, Enum):
    """
    Optional capability methods of the Provider Contract.

    The value IS the method name a provider defines.
    """

    SEARCH = "search"
    GET_MEDIA_SOURCE = "get_media_source"
    GET_MUSIC_INFO = "get_music_info"
    GET_LYRIC = "get_lyric"
    GET_ALBUM_INFO = "get_album_info"
    GET_SHEET_INFO = "get_sheet_info"
    GET_ARTIST_WORKS = "get_artist_works"
    IMPORT_SINGLE_ITEM = "import_single_item"
    IMPORT_SHEET = "import_sheet"
    GET_TOP_LISTS = "get_top_lists"
    GET_TOP_LIST_DETAIL = "get_top_list_detail"
    GET_RECOMMEND_TAGS = "get_recommend_tags"
    GET_SHEETS_BY_TAG = "get_sheets_by_tag"

    @property
    def method_name(self) -> str:
        return self.value


@dataclass(frozen=True)
class ProviderIdentity:
    """Immutable identity of a loaded provider."""

    platform: str
    version: str = "0.0.0"
    author: str | None = None
    src_url: str | None = None
    app_version: str | None = None
    """Optional compatibility range against the host version (PEP 440 specifiers)."""


ProviderMethod = Callable[..., Any]


@dataclass
class ProviderUnit:
    """
    A loaded, callable provider.

    Built by the ProviderLoader (or wrapped around a built-in object).
    Lives as long as its registry entry - replaced or removed = unreachable.
    """

    identity: ProviderIdentity
    methods: dict[ProviderCapability, ProviderMethod] = field(default_factory=dict)
    primary_key: list[str] = field(default_factory=lambda: ["id"])
    cache_control: CacheControl = CacheControl.NO_CACHE
    supported_search_type: frozenset[MediaType] | None = None
    default_search_type: MediaType | None = None
    user_variable_definitions: list[UserVariableDefinition] = field(
        default_factory=list
    )
    hints: dict[str, list[str]] = field(default_factory=dict)

    @property
    def platform(self) -> str:
        return self.identity.platform

    @property
    def version(self) -> str:
        return self.identity.version

    @property
    def capabilities(self) -> frozenset[ProviderCapability]:
        return frozenset(self.methods)

    def has(self, capability: ProviderCapability) -> bool:
        return capability in self.methods

    def supports_search_type(self, media_type: MediaType) -> bool:
        """Undeclared supported_search_type = every type is supported."""
        if self.supported_search_type is None:
            return True
        return media_type in self.supported_search_type

    async def call(self, capability: ProviderCapability, *args: Any) -> Any:
        """Invoke a capability method, awaiting it if it's a coroutine.

        Plain `def` methods run in a worker thread: a provider that sleeps or
        parses a big page must only hold up its own call, never the loop.

        Raises:
            KeyError: If the unit doesn't implement the capability
        """
        method = self.methods[capability]
        if inspect.iscoroutinefunction(method):
            result = method(*args)
        else:
            result = await asyncio.to_thread(method, *args)
        if inspect.isawaitable(result):
            result = await result
        return result

    @classmethod
    def stub(cls, platform: str = "", version: str = "0.0.0") -> "ProviderUnit":
        """Identity-only unit with no-op behavior.

        Hey future me – this is what the loader hands back when the source is
        broken. Downstream code only ever checks "does the unit have capability
        X", never "is there a unit at all".
        """

        async def search(*_args: Any) -> dict[str, Any]:
            return {"is_end": True, "data": []}

        async def get_media_source(*_args: Any) -> None:
            return None

        async def get_album_info(*_args: Any) -> None:
            return None

        return cls(
            identity=ProviderIdentity(platform=platform, version=version),
            methods={
                ProviderCapability.SEARCH: search,
                ProviderCapability.GET_MEDIA_SOURCE: get_media_source,
                ProviderCapability.GET_ALBUM_INFO: get_album_info,
            },
        )


class BaseProvider:
    """
    Convenience base class for providers written as Python classes.

    Built-in providers subclass this; installed provider scripts may too
    (`provider = MyProvider()`). Only define the capability methods you
    support - the loader derives the capability set from what's there.
    """

    platform: str = ""
    version: str = "0.0.0"
    author: str | None = None
    src_url: str | None = None
    app_version: str | None = None
    primary_key: list[str] = ["id"]
    cache_control: str = CacheControl.NO_CACHE.value
    supported_search_type: list[str] | None = None
    default_search_type: str | None = None
    user_variables: list[Mapping[str, Any]] = []
    hints: dict[str, list[str]] = {}


__all__ = [
    "BaseProvider",
    "CacheControl",
    "LoadState",
    "ProviderCapability",
    "ProviderIdentity",
    "ProviderMethod",
    "ProviderUnit",
]
