"""
Provider Host - the ONE call-in point for everything provider related.

Hey future me – the rest of the app NEVER calls a provider directly! It asks
the Host, and the Host:
1. Resolves the target entry from the registry (absent/disabled → None, no error)
2. Checks the capability set the loader computed (no hasattr probing)
3. Calls the provider (sync or async), optionally time-boxed
4. Catches EVERYTHING the provider raises, logs it tagged with the platform,
   and returns None / an empty result instead
5. Normalizes the output into DTOs and stamps `platform` on every item

A misbehaving provider must never break a call that also targeted others.

Fan-out (search, top lists, recommend tags) runs one task per provider via
asyncio.gather and returns results in REGISTRY ENUMERATION ORDER, not
completion order, so merges are deterministic.

Cancellation: we don't cancel in-flight provider calls ourselves. If the
caller's task gets cancelled, the CancelledError passes through gather and
takes the provider tasks with it.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from tunedock.domain.dtos import (
    AlbumInfoResult,
    ChartGroup,
    LyricResult,
    MediaItem,
    MediaSourceResult,
    MediaType,
    ProviderInfo,
    RecommendTags,
    SearchResult,
    SheetInfoResult,
    Tag,
    TopListDetailResult,
)
from tunedock.domain.exceptions import ProviderCallError
from tunedock.domain.ports.provider import ProviderCapability
from tunedock.infrastructure.observability.log_messages import LogMessages
from tunedock.infrastructure.providers.registry import (
    OperationResult,
    ProviderRegistry,
    RegistryEntry,
)

logger = logging.getLogger(__name__)

DEFAULT_QUALITY = "128k"

ItemRef = MediaItem | Mapping[str, Any]


@dataclass
class ProviderOutcome[T]:
    """One provider's contribution to a call.

    `result` is always usable - a failed provider contributes the empty default
    and carries the error for diagnostics.
    """

    platform: str
    result: T
    error: ProviderCallError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None


def _item_platform(item: ItemRef) -> str | None:
    if isinstance(item, (MediaItem, Tag)):
        return item.platform
    platform = item.get("platform")
    return str(platform) if platform else None


def _provider_arg(item: ItemRef | Tag) -> dict[str, Any]:
    """Plain dict handed to provider code (providers never see our DTOs)."""
    if isinstance(item, (MediaItem, Tag)):
        return item.to_provider_dict()
    return dict(item)


class ProviderHost:
    """Stateless facade over the ProviderRegistry."""

    def __init__(self, registry: ProviderRegistry, call_timeout: float | None = None) -> None:
        """Initialize the host.

        Args:
            registry: The provider registry
            call_timeout: Optional per-call timeout in seconds (None = no limit)
        """
        self._registry = registry
        self._call_timeout = call_timeout

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    # =========================================================================
    # Registry passthrough (Host-facing API)
    # =========================================================================

    def list_providers(self) -> list[ProviderInfo]:
        return self._registry.list_info()

    async def set_enabled(self, platform: str, enabled: bool) -> OperationResult:
        return await self._registry.set_enabled(platform, enabled)

    async def set_user_variable(self, platform: str, key: str, value: str) -> OperationResult:
        return await self._registry.set_user_variable(platform, key, value)

    # =========================================================================
    # Multi-provider fan-out
    # =========================================================================

    async def search(
        self,
        query: str,
        page: int = 1,
        media_type: MediaType = MediaType.MUSIC,
        platforms: Sequence[str] | None = None,
    ) -> dict[str, ProviderOutcome[SearchResult]]:
        """Search every enabled provider that supports `media_type`.

        Returns:
            platform → outcome, in registry enumeration order (unmerged)
        """
        entries = [
            entry
            for entry in self._registry.enabled_entries()
            if entry.unit.has(ProviderCapability.SEARCH)
            and entry.unit.supports_search_type(media_type)
            and (platforms is None or entry.platform in platforms)
        ]
        outcomes = await self._fan_out(
            entries,
            ProviderCapability.SEARCH,
            lambda _entry: (query, page, media_type.value),
            lambda raw, platform: SearchResult.from_provider(raw, platform, media_type),
            SearchResult.empty,
        )
        return {outcome.platform: outcome for outcome in outcomes}

    async def get_top_lists(self) -> list[ProviderOutcome[list[ChartGroup]]]:
        """Chart groups of every enabled provider that has charts."""
        entries = self._capable(ProviderCapability.GET_TOP_LISTS)
        return await self._fan_out(
            entries,
            ProviderCapability.GET_TOP_LISTS,
            lambda _entry: (),
            ChartGroup.list_from_provider,
            list,
        )

    async def get_recommend_tags(self) -> list[ProviderOutcome[RecommendTags]]:
        """Pinned tags and tag groups of every enabled provider that has them."""
        entries = self._capable(ProviderCapability.GET_RECOMMEND_TAGS)
        return await self._fan_out(
            entries,
            ProviderCapability.GET_RECOMMEND_TAGS,
            lambda _entry: (),
            RecommendTags.from_provider,
            None,
        )

    # =========================================================================
    # Single-provider calls (routed by the item's platform)
    # =========================================================================

    async def get_media_source(
        self, item: ItemRef, quality: str = DEFAULT_QUALITY
    ) -> MediaSourceResult | None:
        """Playable source for an item.

        Falls back to the item's own `url` when the provider has no
        get_media_source at all.
        """
        entry = self._resolve(_item_platform(item))
        if entry is None:
            return None
        if not entry.unit.has(ProviderCapability.GET_MEDIA_SOURCE):
            url = item.url if isinstance(item, MediaItem) else item.get("url")
            return MediaSourceResult(url=str(url)) if url else None
        outcome = await self._call(
            entry,
            ProviderCapability.GET_MEDIA_SOURCE,
            (_provider_arg(item), quality),
            lambda raw, _platform: MediaSourceResult.from_provider(raw),
            None,
        )
        return outcome.result

    async def get_music_info(self, item: ItemRef) -> MediaItem | None:
        """Item enriched with the provider's extra details (partial update)."""
        entry = self._resolve(_item_platform(item))
        if entry is None or not entry.unit.has(ProviderCapability.GET_MUSIC_INFO):
            return None
        base = _provider_arg(item)

        def merge(raw: Any, platform: str) -> MediaItem | None:
            if not isinstance(raw, Mapping):
                return None
            return MediaItem.from_provider({**base, **raw}, platform)

        outcome = await self._call(
            entry, ProviderCapability.GET_MUSIC_INFO, (base,), merge, None
        )
        return outcome.result

    async def get_lyric(self, item: ItemRef) -> LyricResult | None:
        entry = self._resolve(_item_platform(item))
        if entry is None or not entry.unit.has(ProviderCapability.GET_LYRIC):
            return None
        outcome = await self._call(
            entry,
            ProviderCapability.GET_LYRIC,
            (_provider_arg(item),),
            lambda raw, _platform: LyricResult.from_provider(raw),
            None,
        )
        return outcome.result

    async def get_album_info(self, item: ItemRef, page: int = 1) -> AlbumInfoResult | None:
        entry = self._resolve(_item_platform(item))
        if entry is None or not entry.unit.has(ProviderCapability.GET_ALBUM_INFO):
            return None
        outcome = await self._call(
            entry,
            ProviderCapability.GET_ALBUM_INFO,
            (_provider_arg(item), page),
            AlbumInfoResult.from_provider,
            None,
        )
        return outcome.result

    async def get_sheet_info(self, item: ItemRef, page: int = 1) -> SheetInfoResult | None:
        entry = self._resolve(_item_platform(item))
        if entry is None or not entry.unit.has(ProviderCapability.GET_SHEET_INFO):
            return None
        outcome = await self._call(
            entry,
            ProviderCapability.GET_SHEET_INFO,
            (_provider_arg(item), page),
            SheetInfoResult.from_provider,
            None,
        )
        return outcome.result

    async def get_artist_works(
        self, item: ItemRef, page: int = 1, media_type: MediaType = MediaType.MUSIC
    ) -> SearchResult:
        entry = self._resolve(_item_platform(item))
        if entry is None or not entry.unit.has(ProviderCapability.GET_ARTIST_WORKS):
            return SearchResult.empty()
        outcome = await self._call(
            entry,
            ProviderCapability.GET_ARTIST_WORKS,
            (_provider_arg(item), page, media_type.value),
            lambda raw, platform: SearchResult.from_provider(raw, platform, media_type),
            SearchResult.empty(),
        )
        return outcome.result

    async def get_top_list_detail(
        self, item: ItemRef, page: int = 1
    ) -> TopListDetailResult | None:
        """Tracks of one chart - routed by the platform stamped on the chart item."""
        entry = self._resolve(_item_platform(item))
        if entry is None or not entry.unit.has(ProviderCapability.GET_TOP_LIST_DETAIL):
            return None
        outcome = await self._call(
            entry,
            ProviderCapability.GET_TOP_LIST_DETAIL,
            (_provider_arg(item), page),
            TopListDetailResult.from_provider,
            None,
        )
        return outcome.result

    async def get_sheets_by_tag(
        self, tag: Tag | Mapping[str, Any], page: int = 1, platform: str | None = None
    ) -> SearchResult:
        """Sheets for one tag of one provider (tags are namespaced per platform)."""
        target = platform or _item_platform(tag)
        entry = self._resolve(target)
        if entry is None or not entry.unit.has(ProviderCapability.GET_SHEETS_BY_TAG):
            return SearchResult.empty()
        outcome = await self._call(
            entry,
            ProviderCapability.GET_SHEETS_BY_TAG,
            (_provider_arg(tag), page),
            lambda raw, p: SearchResult.from_provider(raw, p, MediaType.SHEET),
            SearchResult.empty(),
        )
        return outcome.result

    async def import_single_item(self, platform: str, url_like: str) -> MediaItem | None:
        """Import one item through an explicitly chosen provider."""
        entry = self._resolve(platform)
        if entry is None or not entry.unit.has(ProviderCapability.IMPORT_SINGLE_ITEM):
            return None
        outcome = await self._call(
            entry,
            ProviderCapability.IMPORT_SINGLE_ITEM,
            (url_like,),
            lambda raw, p: (
                MediaItem.from_provider(raw, p, overwrite_platform=False)
                if raw is not None
                else None
            ),
            None,
        )
        return outcome.result

    async def import_sheet(self, platform: str, url_like: str) -> list[MediaItem] | None:
        """Import a whole sheet through an explicitly chosen provider."""
        entry = self._resolve(platform)
        if entry is None or not entry.unit.has(ProviderCapability.IMPORT_SHEET):
            return None
        outcome = await self._call(
            entry,
            ProviderCapability.IMPORT_SHEET,
            (url_like,),
            lambda raw, p: (
                MediaItem.list_from_provider(raw, p, overwrite_platform=False)
                if raw is not None
                else None
            ),
            None,
        )
        return outcome.result

    # =========================================================================
    # Internals
    # =========================================================================

    def _resolve(self, platform: str | None) -> RegistryEntry | None:
        """Entry for a platform, or None if it's absent, disabled or broken."""
        if not platform:
            return None
        entry = self._registry.get(platform)
        if entry is None or not entry.invokable:
            return None
        return entry

    def _capable(self, capability: ProviderCapability) -> list[RegistryEntry]:
        return [e for e in self._registry.enabled_entries() if e.unit.has(capability)]

    async def _fan_out[T](
        self,
        entries: list[RegistryEntry],
        capability: ProviderCapability,
        args_for: Callable[[RegistryEntry], tuple[Any, ...]],
        convert: Callable[[Any, str], T],
        default_factory: Callable[[], T] | None,
    ) -> list[ProviderOutcome[T]]:
        """Call one capability on many providers concurrently.

        `default_factory` builds the empty contribution of a failed provider
        (None → the converter applied to None).
        """
        if not entries:
            return []
        tasks = [
            self._call(
                entry,
                capability,
                args_for(entry),
                convert,
                default_factory() if default_factory else convert(None, entry.platform),
            )
            for entry in entries
        ]
        # _call never raises (except cancellation), so order == entries order
        return list(await asyncio.gather(*tasks))

    async def _call[T](
        self,
        entry: RegistryEntry,
        capability: ProviderCapability,
        args: tuple[Any, ...],
        convert: Callable[[Any, str], T],
        default: T,
    ) -> ProviderOutcome[T]:
        platform = entry.platform
        try:
            if self._call_timeout is not None:
                async with asyncio.timeout(self._call_timeout):
                    raw = await entry.unit.call(capability, *args)
            else:
                raw = await entry.unit.call(capability, *args)
            return ProviderOutcome(platform, convert(raw, platform))
        except TimeoutError as e:
            if self._call_timeout is not None:
                logger.warning(
                    LogMessages.provider_call_timeout(
                        platform, capability.value, self._call_timeout
                    ),
                    extra={"platform": platform},
                )
            else:
                logger.warning(
                    LogMessages.provider_call_failed(platform, capability.value, repr(e)),
                    extra={"platform": platform},
                )
            return ProviderOutcome(platform, default, ProviderCallError(platform, capability.value, e))
        except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
            raise
        # Provider code can raise bare BaseException subclasses; those must not
        # escape gather() and take the other providers' results with them
        except BaseException as e:
            error = ProviderCallError(platform, capability.value, e)
            logger.warning(
                LogMessages.provider_call_failed(
                    platform, capability.value, f"{type(e).__name__}: {e}"
                ),
                extra={"platform": platform},
            )
            return ProviderOutcome(platform, default, error)
