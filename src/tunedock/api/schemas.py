"""API request/response schemas.

Response models read straight from the domain dataclasses
(`from_attributes=True`), so `Schema.model_validate(dto)` is all a route needs.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tunedock.domain.dtos import MediaItem, MediaType, Tag
from tunedock.domain.exceptions import InstallErrorReason


class _FromDomain(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# ITEMS
# =============================================================================


class MediaItemSchema(_FromDomain):
    """Cross-provider media item (music, album, artist or sheet)."""

    id: str = Field(..., description="Provider-defined item id")
    platform: str = Field(..., description="Provider that produced the item")
    title: str | None = None
    artist: str | None = None
    album: str | None = None
    artwork: str | None = None
    url: str | None = None
    duration: float | None = None
    media_type: MediaType = MediaType.MUSIC
    extra: dict[str, Any] = Field(
        default_factory=dict, description="Provider-specific fields, passed back untouched"
    )

    def to_dto(self) -> MediaItem:
        return MediaItem(**self.model_dump())


class TagSchema(_FromDomain):
    """Recommendation tag (identity is platform + id)."""

    id: str
    platform: str
    title: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    def to_dto(self) -> Tag:
        return Tag(**self.model_dump())


class TagGroupSchema(_FromDomain):
    title: str
    platform: str
    data: list[TagSchema] = Field(default_factory=list)


class RecommendTagsSchema(_FromDomain):
    platform: str
    pinned: list[TagSchema] = Field(default_factory=list)
    groups: list[TagGroupSchema] = Field(default_factory=list)


class ChartGroupSchema(_FromDomain):
    title: str
    platform: str
    data: list[MediaItemSchema] = Field(default_factory=list)


# =============================================================================
# RESULTS
# =============================================================================


class SearchPageSchema(_FromDomain):
    """Merged multi-provider search page."""

    data: list[MediaItemSchema] = Field(default_factory=list)
    has_more: bool = Field(False, description="True iff some provider reported more pages")
    page: int = 1
    sources: dict[str, int] = Field(default_factory=dict, description="Items per platform")
    failed: list[str] = Field(default_factory=list, description="Platforms that failed")


class SearchResultSchema(_FromDomain):
    """One provider's page (artist works, sheets by tag)."""

    data: list[MediaItemSchema] = Field(default_factory=list)
    is_end: bool | None = True


class MediaSourceSchema(_FromDomain):
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    user_agent: str | None = None
    quality: str | None = None


class LyricSchema(_FromDomain):
    raw_text: str
    translation: str | None = None


class AlbumInfoSchema(_FromDomain):
    album_item: MediaItemSchema | None = None
    items: list[MediaItemSchema] = Field(default_factory=list)
    is_end: bool | None = True


class SheetInfoSchema(_FromDomain):
    sheet_item: MediaItemSchema | None = None
    items: list[MediaItemSchema] = Field(default_factory=list)
    is_end: bool | None = True


class TopListDetailSchema(_FromDomain):
    top_list_item: MediaItemSchema | None = None
    items: list[MediaItemSchema] = Field(default_factory=list)
    is_end: bool | None = True


# =============================================================================
# PROVIDERS
# =============================================================================


class UserVariableDefinitionSchema(_FromDomain):
    key: str
    name: str | None = None
    hint: str | None = None


class ProviderInfoSchema(_FromDomain):
    """One registry entry as rendered by the provider list."""

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
    capabilities: list[str] = Field(default_factory=list)
    supported_search_type: list[str] | None = None
    user_variable_definitions: list[UserVariableDefinitionSchema] = Field(
        default_factory=list
    )
    user_variables: dict[str, str] = Field(default_factory=dict)


class InstallRequest(BaseModel):
    """Install from source text OR from a URL (exactly one)."""

    source_text: str | None = Field(None, description="Provider Python source")
    source_path: str = Field("upload", description="Label used in diagnostics")
    url: str | None = Field(None, description="URL to download the provider from")
    skip_version_check: bool = False

    @model_validator(mode="after")
    def _exactly_one_source(self) -> "InstallRequest":
        if (self.source_text is None) == (self.url is None):
            raise ValueError("Provide exactly one of 'source_text' or 'url'")
        return self


class InstallResponse(_FromDomain):
    success: bool
    message: str
    platform: str | None = None
    install_hash: str | None = None
    reason: InstallErrorReason | None = None


class OperationResponse(_FromDomain):
    success: bool
    message: str
    platform: str | None = None


class EnabledRequest(BaseModel):
    enabled: bool


class VariableRequest(BaseModel):
    value: str


# =============================================================================
# CATALOG REQUESTS
# =============================================================================


class ItemRequest(BaseModel):
    """Single-provider call about one item (routed by item.platform)."""

    item: MediaItemSchema
    page: int = Field(1, ge=1)
    quality: str = "128k"


class TagSheetsRequest(BaseModel):
    tag: TagSchema
    page: int = Field(1, ge=1)
    platform: str | None = Field(None, description="Defaults to tag.platform")


class ImportRequest(BaseModel):
    platform: str = Field(..., description="Provider to import through")
    url_like: str = Field(..., min_length=1, description="URL or id the provider understands")
