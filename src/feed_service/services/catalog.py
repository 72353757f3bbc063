"""Catalog pagination.

The catalog itself lives behind an external API; this module only pages
through it and accumulates what has been loaded so far.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
import structlog
from pydantic import ValidationError

from feed_service.config import Settings
from feed_service.models import CatalogProduct

logger = structlog.get_logger()


@dataclass
class CatalogPage:
    """One page of catalog rows."""

    items: list[CatalogProduct] = field(default_factory=list)
    has_more: bool = False
    next_page: int | None = None


class CatalogSource(Protocol):
    async def fetch_page(self, page: int) -> CatalogPage: ...


def parse_products(rows: list[Any]) -> list[CatalogProduct]:
    """Validate raw rows, skipping the ones that are not usable products."""
    products: list[CatalogProduct] = []
    for row in rows:
        try:
            products.append(CatalogProduct.model_validate(row))
        except ValidationError as e:
            logger.warning("Skipping malformed catalog row", error=str(e))
    return products


class HttpCatalogSource:
    """Offset-paged catalog API: ``GET {base_url}/products?offset=&limit=``.

    The response is either a bare list of rows or an object with
    ``items`` and optionally ``has_more``; without ``has_more`` a full page
    means more rows may follow.
    """

    def __init__(self, client: httpx.AsyncClient, page_size: int = 24):
        self.client = client
        self.page_size = page_size

    async def fetch_page(self, page: int) -> CatalogPage:
        offset = page * self.page_size
        response = await self.client.get(
            "/products", params={"offset": offset, "limit": self.page_size}
        )
        response.raise_for_status()
        body = response.json()

        if isinstance(body, dict):
            rows = body.get("items") or []
            has_more = body.get("has_more")
        else:
            rows = body if isinstance(body, list) else []
            has_more = None

        if has_more is None:
            has_more = len(rows) >= self.page_size

        return CatalogPage(
            items=parse_products(rows),
            has_more=bool(has_more),
            next_page=page + 1 if has_more else None,
        )


class InfiniteCatalog:
    """Accumulates catalog pages for an infinite-scroll feed.

    ``load_more`` is guarded so overlapping calls (several scroll
    sentinels, repeated triggers) issue a single request. Pages may
    overlap, so rows whose id was already loaded are skipped.
    """

    def __init__(self, source: CatalogSource):
        self.source = source
        self.items: list[CatalogProduct] = []
        self.page = 0
        self.has_more = True
        self.error: Exception | None = None
        self._in_flight = False

    @property
    def loading(self) -> bool:
        return self._in_flight

    async def load_more(self) -> bool:
        """
        Fetch the next page and append its unseen rows.

        Returns:
            True if a page was fetched and merged
        """
        if self._in_flight or not self.has_more:
            return False
        self._in_flight = True
        self.error = None

        try:
            result = await self.source.fetch_page(self.page)
            known = {p.id for p in self.items}
            fresh: list[CatalogProduct] = []
            for product in result.items:
                if product.id not in known:
                    known.add(product.id)
                    fresh.append(product)
            self.items.extend(fresh)
            self.has_more = result.has_more
            if result.next_page is not None:
                self.page = result.next_page
            logger.debug(
                "Catalog page loaded",
                page=self.page,
                received=len(result.items),
                appended=len(fresh),
                has_more=self.has_more,
            )
            return True
        except Exception as e:
            logger.error("Catalog page load failed", page=self.page, error=str(e))
            self.error = e
            return False
        finally:
            self._in_flight = False

    def reset(self) -> None:
        self.items = []
        self.page = 0
        self.has_more = True
        self.error = None


def create_catalog_client(settings: Settings) -> httpx.AsyncClient:
    """HTTP client for the configured catalog API."""
    return httpx.AsyncClient(
        base_url=settings.catalog_api_base_url,
        timeout=settings.catalog_api_timeout,
        headers={"Accept": "application/json"},
    )
