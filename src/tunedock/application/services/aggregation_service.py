"""
Aggregation Service - turns per-provider results into ONE page for the app.

Hey future me – the merge rules here are boring and MUST stay that way:

Search merge:
1. Concatenate `data` in registry enumeration order (no cross-provider ranking,
   there's no shared relevance signal).
2. De-duplicate by (id, platform), first occurrence wins. Same id from two
   providers = two different items!
3. has_more is True iff at least one provider EXPLICITLY said is_end=False and
   actually returned data. Omitted is_end, is_end=True, empty data or a failed
   call all contribute nothing. Providers that forget is_end get no second
   page. Tests pin this, don't "fix" it.

Tags/charts: carried through per provider, annotated with the platform.
Tag identity is (platform, id) - never unified across providers.

Chart detail, sheets-by-tag and imports are single-provider calls; we just
route them through the Host.
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from tunedock.application.services.provider_host import (
    DEFAULT_QUALITY,
    ItemRef,
    ProviderHost,
    ProviderOutcome,
)
from tunedock.domain.dtos import (
    ChartGroup,
    MediaItem,
    MediaSourceResult,
    MediaType,
    RecommendTags,
    SearchPage,
    SearchResult,
    Tag,
    TopListDetailResult,
)

logger = logging.getLogger(__name__)


def reports_more(result: SearchResult) -> bool:
    """A provider has more pages only if it said is_end=False AND returned data."""
    return result.is_end is False and bool(result.data)


def merge_search_results(
    outcomes: Mapping[str, ProviderOutcome[SearchResult]], page: int = 1
) -> SearchPage:
    """Merge per-provider search outcomes (already in enumeration order).

    Args:
        outcomes: platform → outcome, iteration order = provider order
        page: Page number to put on the merged page

    Returns:
        Merged, de-duplicated SearchPage
    """
    merged: list[MediaItem] = []
    seen: set[tuple[str, str]] = set()
    sources: dict[str, int] = {}
    failed: list[str] = []
    has_more = False

    for platform, outcome in outcomes.items():
        if outcome.failed:
            failed.append(platform)
            continue
        result = outcome.result
        if reports_more(result):
            has_more = True
        for item in result.data:
            if item.key in seen:
                continue
            seen.add(item.key)
            merged.append(item)
            sources[platform] = sources.get(platform, 0) + 1

    return SearchPage(
        data=merged, has_more=has_more, page=page, sources=sources, failed=failed
    )


class AggregationService:
    """Merged views over the Host's per-provider results."""

    def __init__(self, host: ProviderHost) -> None:
        self._host = host

    @property
    def host(self) -> ProviderHost:
        return self._host

    async def search(
        self,
        query: str,
        page: int = 1,
        media_type: MediaType = MediaType.MUSIC,
        platforms: Sequence[str] | None = None,
    ) -> SearchPage:
        """One merged page: every provider is asked for the same `page`."""
        outcomes = await self._host.search(query, page, media_type, platforms)
        result = merge_search_results(outcomes, page)
        logger.debug(
            "Search '%s' (%s, page %d): %d items from %s, has_more=%s, failed=%s",
            query,
            media_type.value,
            page,
            len(result.data),
            result.sources,
            result.has_more,
            result.failed,
        )
        return result

    def cursor(
        self,
        query: str,
        media_type: MediaType = MediaType.MUSIC,
        platforms: Sequence[str] | None = None,
    ) -> "SearchCursor":
        """Paginator that tracks each provider's page independently."""
        return SearchCursor(self._host, query, media_type, platforms)

    async def get_recommend_tags(self) -> list[RecommendTags]:
        """Tags of every provider, each annotated with its platform.

        Failed providers are left out.
        """
        outcomes = await self._host.get_recommend_tags()
        return [o.result for o in outcomes if not o.failed]

    async def get_top_lists(self) -> list[ChartGroup]:
        """All chart groups, provider by provider (each group carries its platform)."""
        outcomes = await self._host.get_top_lists()
        groups: list[ChartGroup] = []
        for outcome in outcomes:
            if not outcome.failed:
                groups.extend(outcome.result)
        return groups

    async def get_top_list_detail(self, item: ItemRef, page: int = 1) -> TopListDetailResult | None:
        return await self._host.get_top_list_detail(item, page)

    async def get_sheets_by_tag(
        self, tag: Tag | Mapping[str, Any], page: int = 1, platform: str | None = None
    ) -> SearchResult:
        return await self._host.get_sheets_by_tag(tag, page, platform)

    async def get_media_source(
        self, item: ItemRef, quality: str = DEFAULT_QUALITY
    ) -> MediaSourceResult | None:
        return await self._host.get_media_source(item, quality)

    async def import_single_item(self, platform: str, url_like: str) -> MediaItem | None:
        return await self._host.import_single_item(platform, url_like)

    async def import_sheet(self, platform: str, url_like: str) -> list[MediaItem] | None:
        return await self._host.import_sheet(platform, url_like)


class SearchCursor:
    """
    Multi-provider paginator for one query.

    Hey future me – providers paginate independently, so we keep a next-page
    number PER PLATFORM. A provider drops out (exhausted) the first time it
    doesn't report more (see `reports_more`), including when its call fails.
    Each `next_page()` only asks non-exhausted providers, grouped by their own
    next page number, and merges with the exact same rule as a single search.
    """

    def __init__(
        self,
        host: ProviderHost,
        query: str,
        media_type: MediaType = MediaType.MUSIC,
        platforms: Sequence[str] | None = None,
    ) -> None:
        self._host = host
        self.query = query
        self.media_type = media_type
        self._platforms = list(platforms) if platforms is not None else None
        self._next_page: dict[str, int] = {}
        self._exhausted: set[str] = set()
        self._started = False
        self.page = 0

    @property
    def has_more(self) -> bool:
        if not self._started:
            return True
        return any(p not in self._exhausted for p in self._next_page)

    def next_page_of(self, platform: str) -> int | None:
        """Next page a provider will be asked for (None = exhausted/unknown)."""
        if platform in self._exhausted:
            return None
        return self._next_page.get(platform)

    async def next_page(self) -> SearchPage:
        """Fetch and merge the next page across non-exhausted providers."""
        if not self.has_more:
            return SearchPage(data=[], has_more=False, page=self.page)

        if not self._started:
            outcomes = await self._host.search(
                self.query, 1, self.media_type, self._platforms
            )
        else:
            outcomes = await self._fetch_active()
            # Disabled/removed since the last page: nothing more will come from them
            for platform in self._next_page:
                if platform not in outcomes:
                    self._exhausted.add(platform)
        self._started = True
        self.page += 1

        for platform, outcome in outcomes.items():
            current = self._next_page.get(platform, 1)
            if not outcome.failed and reports_more(outcome.result):
                self._next_page[platform] = current + 1
            else:
                self._next_page[platform] = current
                self._exhausted.add(platform)

        return merge_search_results(outcomes, self.page)

    async def _fetch_active(self) -> dict[str, ProviderOutcome[SearchResult]]:
        by_page: dict[int, list[str]] = {}
        for platform, page in self._next_page.items():
            if platform not in self._exhausted:
                by_page.setdefault(page, []).append(platform)

        rounds = await asyncio.gather(
            *(
                self._host.search(self.query, page, self.media_type, platforms)
                for page, platforms in by_page.items()
            )
        )
        combined: dict[str, ProviderOutcome[SearchResult]] = {}
        for outcomes in rounds:
            combined.update(outcomes)

        # Merge order = first-seen order of providers (registry enumeration order)
        order = list(self._next_page)
        return {p: combined[p] for p in sorted(combined, key=order.index)}
