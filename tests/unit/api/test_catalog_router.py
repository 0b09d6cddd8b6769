"""Tests for the catalog endpoints (search, media, charts, tags, imports)."""

from collections.abc import AsyncIterator
from typing import Any

import pytest
from conftest import RegistryFactory, build_api_app, make_provider
from httpx import ASGITransport, AsyncClient

from tunedock.infrastructure.providers import ProviderRegistry
from tunedock.infrastructure.providers.builtin import SampleProvider


def broken(*_args: Any) -> Any:
    raise RuntimeError("upstream is down")


@pytest.fixture
async def registry(make_registry: RegistryFactory) -> ProviderRegistry:
    return await make_registry(
        SampleProvider(),
        make_provider(
            "flaky",
            search=broken,
            get_top_lists=broken,
            get_recommend_tags=broken,
            get_lyric=broken,
        ),
    )


@pytest.fixture
async def client(registry: ProviderRegistry) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=build_api_app(registry))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def item(item_id: str, platform: str = "sample", **fields: Any) -> dict[str, Any]:
    return {"item": {"id": item_id, "platform": platform, **fields}}


class TestSearch:
    async def test_failing_provider_does_not_break_search(self, client: AsyncClient) -> None:
        response = await client.get("/search", params={"query": "sample"})

        assert response.status_code == 200
        body = response.json()
        assert [(i["id"], i["platform"]) for i in body["data"]] == [("1", "sample"), ("2", "sample")]
        assert body["failed"] == ["flaky"]
        assert body["has_more"] is False
        assert body["sources"] == {"sample": 2}

    async def test_media_type_and_platform_filter(self, client: AsyncClient) -> None:
        response = await client.get(
            "/search",
            params={"query": "sample", "media_type": "album", "platforms": ["sample"]},
        )

        body = response.json()
        assert [i["id"] for i in body["data"]] == ["sample-album"]
        assert body["data"][0]["media_type"] == "album"
        assert body["failed"] == []

    async def test_query_is_required(self, client: AsyncClient) -> None:
        response = await client.get("/search")
        assert response.status_code == 422

    async def test_disabled_provider_is_skipped(
        self, client: AsyncClient, registry: ProviderRegistry
    ) -> None:
        await registry.set_enabled("flaky", False)

        body = (await client.get("/search", params={"query": "sample"})).json()

        assert body["failed"] == []


class TestMediaEndpoints:
    async def test_media_source(self, client: AsyncClient) -> None:
        response = await client.post("/media/source", json={**item("1"), "quality": "320k"})

        assert response.status_code == 200
        assert response.json()["url"] == "https://example.com/song1.mp3"
        assert response.json()["quality"] == "320k"

    async def test_unknown_platform_yields_null(self, client: AsyncClient) -> None:
        response = await client.post("/media/source", json=item("1", platform="ghost"))

        assert response.status_code == 200
        assert response.json() is None

    async def test_failing_provider_yields_null(self, client: AsyncClient) -> None:
        response = await client.post("/media/lyric", json=item("1", platform="flaky"))

        assert response.status_code == 200
        assert response.json() is None

    async def test_lyric(self, client: AsyncClient) -> None:
        response = await client.post("/media/lyric", json=item("3"))
        assert "Sample Lyrics" in response.json()["raw_text"]

    async def test_music_info_keeps_extra(self, client: AsyncClient) -> None:
        response = await client.post(
            "/media/info", json=item("3", extra={"mid": "m-3"})
        )

        body = response.json()
        assert body["title"] == "Another Song"
        assert body["platform"] == "sample"
        assert body["extra"] == {"mid": "m-3"}

    async def test_album_and_sheet(self, client: AsyncClient) -> None:
        album = (await client.post("/media/album", json=item("another-album"))).json()
        sheet = (await client.post("/media/sheet", json=item("chill"))).json()

        assert album["album_item"]["media_type"] == "album"
        assert [i["id"] for i in album["items"]] == ["3"]
        assert sheet["sheet_item"]["title"] == "Chill Samples"
        assert [i["id"] for i in sheet["items"]] == ["2"]

    async def test_artist_works(self, client: AsyncClient) -> None:
        response = await client.post(
            "/media/artist-works",
            params={"media_type": "album"},
            json=item("sample-artist", title="Sample Artist", media_type="artist"),
        )

        body = response.json()
        assert [i["id"] for i in body["data"]] == ["sample-album"]
        assert body["is_end"] is True


class TestChartsAndTags:
    async def test_charts_skip_failing_provider(self, client: AsyncClient) -> None:
        groups = (await client.get("/charts")).json()

        assert [(g["title"], g["platform"]) for g in groups] == [("Sample Charts", "sample")]
        assert groups[0]["data"][0]["media_type"] == "sheet"

    async def test_chart_detail(self, client: AsyncClient) -> None:
        response = await client.post("/charts/detail", json=item("top", title="Top Samples"))

        body = response.json()
        assert body["top_list_item"]["id"] == "top"
        assert len(body["items"]) == 3

    async def test_tags_and_sheets_by_tag(self, client: AsyncClient) -> None:
        [tags] = (await client.get("/tags")).json()
        chill = tags["groups"][0]["data"][0]

        response = await client.post("/tags/sheets", json={"tag": chill})

        assert tags["platform"] == "sample"
        assert chill["platform"] == "sample"
        assert [s["id"] for s in response.json()["data"]] == ["chill"]


class TestImports:
    async def test_import_item(self, client: AsyncClient) -> None:
        response = await client.post(
            "/import/item",
            json={"platform": "sample", "url_like": "https://sample.com/song/1"},
        )

        assert response.json()["title"] == "Sample Song 1"
        assert response.json()["platform"] == "sample"

    async def test_import_sheet(self, client: AsyncClient) -> None:
        response = await client.post(
            "/import/sheet",
            json={"platform": "sample", "url_like": "https://sample.com/sheet/favourites"},
        )

        assert [i["id"] for i in response.json()] == ["1", "3"]

    async def test_unsupported_import_is_null(self, client: AsyncClient) -> None:
        response = await client.post(
            "/import/sheet", json={"platform": "flaky", "url_like": "anything"}
        )

        assert response.status_code == 200
        assert response.json() is None
