"""Catalog endpoints: search, media details, charts, tags and imports.

Multi-provider views (search, charts, tags) go through the AggregationService.
Per-item calls go through the ProviderHost and are routed by the item's
`platform`. A provider that's missing, disabled or failing yields `null` /
an empty result here, never an error status.
"""

import logging

from fastapi import APIRouter, Depends, Query

from tunedock.api.dependencies import get_aggregation_service, get_provider_host
from tunedock.api.schemas import (
    AlbumInfoSchema,
    ChartGroupSchema,
    ImportRequest,
    ItemRequest,
    LyricSchema,
    MediaItemSchema,
    MediaSourceSchema,
    RecommendTagsSchema,
    SearchPageSchema,
    SearchResultSchema,
    SheetInfoSchema,
    TagSheetsRequest,
    TopListDetailSchema,
)
from tunedock.application.services.aggregation_service import AggregationService
from tunedock.application.services.provider_host import ProviderHost
from tunedock.domain.dtos import MediaType

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Catalog"])


# =============================================================================
# SEARCH
# =============================================================================


@router.get("/search", response_model=SearchPageSchema)
async def search(
    query: str = Query(..., min_length=1, description="Search text"),
    page: int = Query(1, ge=1, description="1-based page"),
    media_type: MediaType = Query(MediaType.MUSIC, description="What to search for"),
    platforms: list[str] | None = Query(None, description="Restrict to these providers"),
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> SearchPageSchema:
    """Search all enabled providers and merge the results into one page."""
    result = await aggregation.search(query, page, media_type, platforms)
    return SearchPageSchema.model_validate(result)


# =============================================================================
# SINGLE ITEM
# =============================================================================


@router.post("/media/source", response_model=MediaSourceSchema | None)
async def get_media_source(
    request: ItemRequest,
    host: ProviderHost = Depends(get_provider_host),
) -> MediaSourceSchema | None:
    result = await host.get_media_source(request.item.to_dto(), request.quality)
    return MediaSourceSchema.model_validate(result) if result else None


@router.post("/media/info", response_model=MediaItemSchema | None)
async def get_music_info(
    request: ItemRequest,
    host: ProviderHost = Depends(get_provider_host),
) -> MediaItemSchema | None:
    result = await host.get_music_info(request.item.to_dto())
    return MediaItemSchema.model_validate(result) if result else None


@router.post("/media/lyric", response_model=LyricSchema | None)
async def get_lyric(
    request: ItemRequest,
    host: ProviderHost = Depends(get_provider_host),
) -> LyricSchema | None:
    result = await host.get_lyric(request.item.to_dto())
    return LyricSchema.model_validate(result) if result else None


@router.post("/media/album", response_model=AlbumInfoSchema | None)
async def get_album_info(
    request: ItemRequest,
    host: ProviderHost = Depends(get_provider_host),
) -> AlbumInfoSchema | None:
    result = await host.get_album_info(request.item.to_dto(), request.page)
    return AlbumInfoSchema.model_validate(result) if result else None


@router.post("/media/sheet", response_model=SheetInfoSchema | None)
async def get_sheet_info(
    request: ItemRequest,
    host: ProviderHost = Depends(get_provider_host),
) -> SheetInfoSchema | None:
    result = await host.get_sheet_info(request.item.to_dto(), request.page)
    return SheetInfoSchema.model_validate(result) if result else None


@router.post("/media/artist-works", response_model=SearchResultSchema)
async def get_artist_works(
    request: ItemRequest,
    media_type: MediaType = Query(MediaType.MUSIC),
    host: ProviderHost = Depends(get_provider_host),
) -> SearchResultSchema:
    result = await host.get_artist_works(request.item.to_dto(), request.page, media_type)
    return SearchResultSchema.model_validate(result)


# =============================================================================
# CHARTS & TAGS
# =============================================================================


@router.get("/charts", response_model=list[ChartGroupSchema])
async def get_top_lists(
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> list[ChartGroupSchema]:
    """Chart groups of all enabled providers, each tagged with its platform."""
    groups = await aggregation.get_top_lists()
    return [ChartGroupSchema.model_validate(group) for group in groups]


@router.post("/charts/detail", response_model=TopListDetailSchema | None)
async def get_top_list_detail(
    request: ItemRequest,
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> TopListDetailSchema | None:
    """Tracks of one chart, routed to the provider that owns it."""
    result = await aggregation.get_top_list_detail(request.item.to_dto(), request.page)
    return TopListDetailSchema.model_validate(result) if result else None


@router.get("/tags", response_model=list[RecommendTagsSchema])
async def get_recommend_tags(
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> list[RecommendTagsSchema]:
    tags = await aggregation.get_recommend_tags()
    return [RecommendTagsSchema.model_validate(t) for t in tags]


@router.post("/tags/sheets", response_model=SearchResultSchema)
async def get_sheets_by_tag(
    request: TagSheetsRequest,
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> SearchResultSchema:
    result = await aggregation.get_sheets_by_tag(
        request.tag.to_dto(), request.page, request.platform
    )
    return SearchResultSchema.model_validate(result)


# =============================================================================
# IMPORT
# =============================================================================


@router.post("/import/item", response_model=MediaItemSchema | None)
async def import_single_item(
    request: ImportRequest,
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> MediaItemSchema | None:
    item = await aggregation.import_single_item(request.platform, request.url_like)
    return MediaItemSchema.model_validate(item) if item else None


@router.post("/import/sheet", response_model=list[MediaItemSchema] | None)
async def import_sheet(
    request: ImportRequest,
    aggregation: AggregationService = Depends(get_aggregation_service),
) -> list[MediaItemSchema] | None:
    items = await aggregation.import_sheet(request.platform, request.url_like)
    if items is None:
        return None
    return [MediaItemSchema.model_validate(item) for item in items]
