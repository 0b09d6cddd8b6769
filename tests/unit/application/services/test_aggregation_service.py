"""Tests for the aggregation layer.

Hey future me - the has_more policy is conservative: only an explicit
is_end=False with data counts. The TestHasMorePolicy cases pin it; if one
fails, the merge changed, not the test.
"""

from typing import Any

from conftest import RegistryFactory, make_provider

from tunedock.application.services.aggregation_service import (
    AggregationService,
    merge_search_results,
)
from tunedock.application.services.provider_host import ProviderHost, ProviderOutcome
from tunedock.domain.dtos import MediaItem, MediaType, SearchResult, Tag
from tunedock.domain.exceptions import ProviderCallError


def result(*ids: str, is_end: bool | None = True, platform: str = "a") -> SearchResult:
    return SearchResult(data=[MediaItem(id=i, platform=platform) for i in ids], is_end=is_end)


def ok(platform: str, search_result: SearchResult) -> ProviderOutcome[SearchResult]:
    return ProviderOutcome(platform, search_result)


def failed(platform: str) -> ProviderOutcome[SearchResult]:
    error = ProviderCallError(platform, "search", RuntimeError("boom"))
    return ProviderOutcome(platform, SearchResult.empty(), error)


def raw_search(data: list[dict[str, Any]], is_end: Any = True) -> Any:
    def search(query: str, page: int, media_type: str) -> dict[str, Any]:
        response: dict[str, Any] = {"data": data}
        if is_end is not None:
            response["is_end"] = is_end
        return response

    return search


def paged(pages: dict[int, dict[str, Any]], calls: list[int] | None = None) -> Any:
    async def search(query: str, page: int, media_type: str) -> dict[str, Any]:
        if calls is not None:
            calls.append(page)
        return pages.get(page, {"is_end": True, "data": []})

    return search


def boom(*_args: Any) -> Any:
    raise RuntimeError("provider bug")


async def service_for(make_registry: RegistryFactory, *providers: Any) -> AggregationService:
    return AggregationService(ProviderHost(await make_registry(*providers)))


class TestSearchMerge:
    """Test the cross-provider search merge."""

    async def test_three_providers_one_failing(self, make_registry: RegistryFactory) -> None:
        """A has 2 items and more pages, B is empty, C throws."""
        service = await service_for(
            make_registry,
            make_provider("A", search=raw_search([{"id": "1"}, {"id": "2"}], is_end=False)),
            make_provider("B", search=raw_search([])),
            make_provider("C", search=boom),
        )

        page = await service.search("q")

        assert [(i.id, i.platform) for i in page.data] == [("1", "A"), ("2", "A")]
        assert page.has_more is True
        assert page.failed == ["C"]
        assert page.sources == {"A": 2}

    async def test_same_id_on_two_platforms_is_kept(self, make_registry: RegistryFactory) -> None:
        service = await service_for(
            make_registry,
            make_provider("a", search=raw_search([{"id": "1", "title": "from a"}])),
            make_provider("b", search=raw_search([{"id": "1", "title": "from b"}])),
        )

        page = await service.search("q")

        assert [(i.id, i.platform) for i in page.data] == [("1", "a"), ("1", "b")]

    async def test_duplicate_within_provider_keeps_first(
        self, make_registry: RegistryFactory
    ) -> None:
        service = await service_for(
            make_registry,
            make_provider(
                "a",
                search=raw_search([{"id": "1", "title": "first"}, {"id": "1", "title": "second"}]),
            ),
        )

        page = await service.search("q")

        assert [i.title for i in page.data] == ["first"]
        assert page.sources == {"a": 1}

    async def test_order_is_enumeration_order(self) -> None:
        outcomes = {
            "b": ok("b", result("b1", "b2", platform="b")),
            "a": ok("a", result("a1", platform="a")),
        }

        page = merge_search_results(outcomes, page=4)

        assert [i.id for i in page.data] == ["b1", "b2", "a1"]
        assert page.page == 4

    async def test_disabling_removes_contribution_immediately(
        self, make_registry: RegistryFactory
    ) -> None:
        registry = await make_registry(
            make_provider("a", search=raw_search([{"id": "1"}])),
            make_provider("b", search=raw_search([{"id": "2"}])),
        )
        service = AggregationService(ProviderHost(registry))

        before = await service.search("q")
        await registry.set_enabled("b", False)
        after = await service.search("q")

        assert before.sources == {"a": 1, "b": 1}
        assert after.sources == {"a": 1}

    async def test_no_providers_is_an_empty_page(self, make_registry: RegistryFactory) -> None:
        service = await service_for(make_registry)

        page = await service.search("q")

        assert page.data == []
        assert page.has_more is False


class TestHasMorePolicy:
    """Pin the conservative has_more rule."""

    def test_explicit_false_with_data(self) -> None:
        assert merge_search_results({"a": ok("a", result("1", is_end=False))}).has_more

    def test_omitted_is_end_contributes_nothing(self) -> None:
        assert not merge_search_results({"a": ok("a", result("1", is_end=None))}).has_more

    def test_is_end_true_contributes_nothing(self) -> None:
        assert not merge_search_results({"a": ok("a", result("1", is_end=True))}).has_more

    def test_empty_data_contributes_nothing(self) -> None:
        assert not merge_search_results({"a": ok("a", result(is_end=False))}).has_more

    def test_failed_provider_contributes_nothing(self) -> None:
        page = merge_search_results({"a": failed("a")})
        assert not page.has_more
        assert page.failed == ["a"]

    def test_any_provider_with_more_is_enough(self) -> None:
        page = merge_search_results(
            {
                "a": ok("a", result("1", is_end=None)),
                "b": ok("b", result("2", is_end=False, platform="b")),
            }
        )
        assert page.has_more

    async def test_string_false_is_not_false(self, make_registry: RegistryFactory) -> None:
        service = await service_for(
            make_registry, make_provider("a", search=raw_search([{"id": "1"}], is_end="false"))
        )

        assert (await service.search("q")).has_more is False


class TestSearchCursor:
    """Test per-provider pagination."""

    async def test_pages_each_provider_independently(
        self, make_registry: RegistryFactory
    ) -> None:
        a_calls: list[int] = []
        b_calls: list[int] = []
        service = await service_for(
            make_registry,
            make_provider(
                "a",
                search=paged(
                    {
                        1: {"is_end": False, "data": [{"id": "a1"}]},
                        2: {"is_end": True, "data": [{"id": "a2"}]},
                    },
                    a_calls,
                ),
            ),
            make_provider("b", search=paged({1: {"is_end": True, "data": [{"id": "b1"}]}}, b_calls)),
        )
        cursor = service.cursor("q")

        assert cursor.has_more
        first = await cursor.next_page()
        assert [i.id for i in first.data] == ["a1", "b1"]
        assert first.has_more
        assert cursor.next_page_of("a") == 2
        assert cursor.next_page_of("b") is None

        second = await cursor.next_page()
        assert [i.id for i in second.data] == ["a2"]
        assert not cursor.has_more

        third = await cursor.next_page()
        assert third.data == []
        assert a_calls == [1, 2]
        assert b_calls == [1]

    async def test_providers_on_different_pages_keep_order(
        self, make_registry: RegistryFactory
    ) -> None:
        service = await service_for(
            make_registry,
            make_provider(
                "a",
                search=paged(
                    {
                        1: {"is_end": False, "data": [{"id": "a1"}]},
                        2: {"is_end": False, "data": [{"id": "a2"}]},
                        3: {"is_end": True, "data": [{"id": "a3"}]},
                    }
                ),
            ),
            make_provider(
                "b",
                search=paged(
                    {
                        1: {"is_end": False, "data": [{"id": "b1"}]},
                        2: {"is_end": True, "data": [{"id": "b2"}]},
                    }
                ),
            ),
        )
        cursor = service.cursor("q")

        pages = [await cursor.next_page() for _ in range(3)]

        assert [[i.id for i in p.data] for p in pages] == [["a1", "b1"], ["a2", "b2"], ["a3"]]
        assert [p.page for p in pages] == [1, 2, 3]

    async def test_failure_exhausts_provider(self, make_registry: RegistryFactory) -> None:
        calls: list[int] = []

        async def flaky(query: str, page: int, media_type: str) -> dict[str, Any]:
            calls.append(page)
            if page == 2:
                raise RuntimeError("rate limited")
            return {"is_end": False, "data": [{"id": f"x{page}"}]}

        service = await service_for(make_registry, make_provider("a", search=flaky))
        cursor = service.cursor("q")

        await cursor.next_page()
        second = await cursor.next_page()

        assert second.failed == ["a"]
        assert not cursor.has_more
        assert calls == [1, 2]

    async def test_disabled_provider_stops_paging(self, make_registry: RegistryFactory) -> None:
        registry = await make_registry(
            make_provider("a", search=raw_search([{"id": "1"}], is_end=False))
        )
        cursor = AggregationService(ProviderHost(registry)).cursor("q")

        await cursor.next_page()
        await registry.set_enabled("a", False)
        page = await cursor.next_page()

        assert page.data == []
        assert not cursor.has_more


class TestCatalogViews:
    """Test tags, charts and single-provider passthroughs."""

    async def test_tags_are_namespaced_and_failures_omitted(
        self, make_registry: RegistryFactory
    ) -> None:
        service = await service_for(
            make_registry,
            make_provider("a", get_recommend_tags=lambda: {"pinned": [{"id": "rock"}]}),
            make_provider("b", get_recommend_tags=lambda: {"pinned": [{"id": "rock"}]}),
            make_provider("c", get_recommend_tags=boom),
        )

        tags = await service.get_recommend_tags()

        assert [t.platform for t in tags] == ["a", "b"]
        keys = {t.pinned[0].key for t in tags}
        assert keys == {("a", "rock"), ("b", "rock")}

    async def test_top_lists_are_flattened_with_platform(
        self, make_registry: RegistryFactory
    ) -> None:
        service = await service_for(
            make_registry,
            make_provider(
                "a",
                get_top_lists=lambda: [
                    {"title": "Hot", "data": [{"id": "hot"}]},
                    {"title": "New", "data": [{"id": "new"}]},
                ],
            ),
            make_provider("b", get_top_lists=lambda: [{"title": "B", "data": []}]),
        )

        groups = await service.get_top_lists()

        assert [(g.title, g.platform) for g in groups] == [("Hot", "a"), ("New", "a"), ("B", "b")]

    async def test_top_list_detail_goes_to_chart_owner(
        self, make_registry: RegistryFactory
    ) -> None:
        service = await service_for(
            make_registry,
            make_provider("a", get_top_list_detail=lambda chart, page: {"items": [{"id": "fromA"}]}),
            make_provider("b", get_top_list_detail=lambda chart, page: {"items": [{"id": "fromB"}]}),
        )
        chart = MediaItem(id="top", platform="b", media_type=MediaType.SHEET)

        detail = await service.get_top_list_detail(chart)

        assert detail is not None
        assert [i.id for i in detail.items] == ["fromB"]

    async def test_sheets_by_tag_and_imports(self, make_registry: RegistryFactory) -> None:
        service = await service_for(
            make_registry,
            make_provider(
                "a",
                get_sheets_by_tag=lambda tag, page: {"data": [{"id": f"sheet-{tag['id']}"}]},
                import_single_item=lambda url: {"id": "i1"},
                import_sheet=lambda url: [{"id": "s1"}],
                get_media_source=lambda item, quality: {"url": "https://a", "quality": quality},
            ),
        )

        sheets = await service.get_sheets_by_tag(Tag(id="jazz", platform="a"))
        item = await service.import_single_item("a", "x")
        sheet = await service.import_sheet("a", "x")
        source = await service.get_media_source({"id": "i1", "platform": "a"}, "flac")

        assert [s.id for s in sheets.data] == ["sheet-jazz"]
        assert item is not None and item.platform == "a"
        assert sheet is not None and sheet[0].id == "s1"
        assert source is not None and source.quality == "flac"
