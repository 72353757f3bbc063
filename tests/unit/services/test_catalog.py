"""Unit tests for catalog pagination."""

import asyncio
from typing import Any

import httpx
import pytest

from feed_service.models import CatalogProduct
from feed_service.services.catalog import (
    CatalogPage,
    HttpCatalogSource,
    InfiniteCatalog,
    create_catalog_client,
    parse_products,
)


class FakeSource:
    """Serves prepared pages and records which pages were requested."""

    def __init__(self, pages: list[Any], gate: asyncio.Event | None = None):
        self.pages = pages
        self.gate = gate
        self.calls: list[int] = []

    async def fetch_page(self, page: int) -> CatalogPage:
        self.calls.append(page)
        if self.gate is not None:
            await self.gate.wait()
        result = self.pages[page]
        if isinstance(result, Exception):
            raise result
        return result


def products(*ids: int) -> list[CatalogProduct]:
    return [CatalogProduct(id=i, name=f"Produto {i}") for i in ids]


class TestInfiniteCatalog:
    """Tests for page-by-page catalog loading."""

    @pytest.mark.asyncio
    async def test_appends_pages_in_order(self) -> None:
        source = FakeSource(
            [
                CatalogPage(products(1, 2), has_more=True, next_page=1),
                CatalogPage(products(3), has_more=False),
            ]
        )
        catalog = InfiniteCatalog(source)

        assert await catalog.load_more()
        assert await catalog.load_more()
        assert [p.id for p in catalog.items] == [1, 2, 3]
        assert catalog.has_more is False

        assert await catalog.load_more() is False
        assert source.calls == [0, 1]

    @pytest.mark.asyncio
    async def test_skips_ids_already_loaded(self) -> None:
        source = FakeSource(
            [
                CatalogPage(products(1, 2), has_more=True, next_page=1),
                CatalogPage(products(2, 3, 3), has_more=False),
            ]
        )
        catalog = InfiniteCatalog(source)
        await catalog.load_more()
        await catalog.load_more()

        assert [p.id for p in catalog.items] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_overlapping_calls_fetch_once(self) -> None:
        gate = asyncio.Event()
        source = FakeSource([CatalogPage(products(1), has_more=True, next_page=1)], gate)
        catalog = InfiniteCatalog(source)

        first = asyncio.create_task(catalog.load_more())
        await asyncio.sleep(0)
        assert catalog.loading
        assert await catalog.load_more() is False

        gate.set()
        assert await first is True
        assert source.calls == [0]
        assert catalog.loading is False

    @pytest.mark.asyncio
    async def test_error_is_captured(self) -> None:
        source = FakeSource([httpx.ConnectError("boom")])
        catalog = InfiniteCatalog(source)

        assert await catalog.load_more() is False
        assert isinstance(catalog.error, httpx.ConnectError)
        assert catalog.items == []
        assert catalog.has_more is True
        assert catalog.loading is False

    @pytest.mark.asyncio
    async def test_reset(self) -> None:
        source = FakeSource([CatalogPage(products(1), has_more=False)])
        catalog = InfiniteCatalog(source)
        await catalog.load_more()
        catalog.reset()

        assert catalog.items == []
        assert catalog.page == 0
        assert catalog.has_more is True


class TestHttpCatalogSource:
    """Tests for fetching catalog pages over HTTP."""

    @staticmethod
    def client(handler: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=httpx.MockTransport(handler), base_url="http://catalog.test"
        )

    @pytest.mark.asyncio
    async def test_paged_envelope(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200, json={"items": [{"id": 7, "name": "Saia"}], "has_more": True}
            )

        async with self.client(handler) as client:
            page = await HttpCatalogSource(client, page_size=10).fetch_page(2)

        assert seen[0].url.path == "/products"
        assert seen[0].url.params["offset"] == "20"
        assert seen[0].url.params["limit"] == "10"
        assert [p.id for p in page.items] == [7]
        assert page.has_more is True
        assert page.next_page == 3

    @pytest.mark.asyncio
    async def test_bare_list_infers_has_more(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=[{"id": 1}, {"id": 2}])

        async with self.client(handler) as client:
            full = await HttpCatalogSource(client, page_size=2).fetch_page(0)
            short = await HttpCatalogSource(client, page_size=5).fetch_page(0)

        assert full.has_more is True
        assert short.has_more is False
        assert short.next_page is None

    @pytest.mark.asyncio
    async def test_http_error_reaches_pager(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        async with self.client(handler) as client:
            catalog = InfiniteCatalog(HttpCatalogSource(client))
            assert await catalog.load_more() is False

        assert isinstance(catalog.error, httpx.HTTPStatusError)

    def test_malformed_rows_skipped(self) -> None:
        parsed = parse_products([{"id": 1}, {"name": "no id"}, "junk", {"id": "x"}])
        assert [p.id for p in parsed] == [1]

    @pytest.mark.asyncio
    async def test_client_uses_settings(self, test_settings: Any) -> None:
        async with create_catalog_client(test_settings) as client:
            assert client.base_url.host == "catalog.test"
            assert client.timeout.read == test_settings.catalog_api_timeout
