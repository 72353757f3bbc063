"""Personalized feed endpoints."""

from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Annotated
from uuid import uuid4

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from feed_service.api.v1.schemas import FeedProduct, FilterRequest
from feed_service.config import Settings, get_settings
from feed_service.infrastructure.storage import get_profile_storage
from feed_service.models import CatalogProduct
from feed_service.services.catalog import (
    CatalogSource,
    HttpCatalogSource,
    InfiniteCatalog,
    create_catalog_client,
)
from feed_service.services.feed import FeedSession
from feed_service.services.filters import available_categories, available_sizes

logger = structlog.get_logger()

router = APIRouter()


class FeedRequest(BaseModel):
    """Loaded catalog rows to turn into a personalized feed."""

    profile_id: str = Field(..., min_length=1, description="Browser profile identifier")
    session_seed: int | None = Field(
        None, description="Seed of the per-item jitter; random when omitted"
    )
    products: list[CatalogProduct] = Field(default_factory=list)
    filters: FilterRequest | None = None
    limit: int | None = Field(None, ge=1, description="Truncate the ranked feed")


class FeedResponse(BaseModel):
    """Ranked feed plus the facet options present in the catalog."""

    items: list[FeedProduct]
    total: int
    categories: list[str]
    sizes: list[str]
    session_seed: int
    explored: bool
    has_more: bool = False
    request_id: str
    profile_id: str
    generated_at: str


async def get_catalog_source(
    settings: Annotated[Settings, Depends(get_settings)],
) -> AsyncGenerator[CatalogSource, None]:
    """Catalog API source for the duration of one request."""
    async with create_catalog_client(settings) as client:
        yield HttpCatalogSource(client, page_size=settings.catalog_page_size)


def _rank_products(
    profile_id: str,
    products: list[CatalogProduct],
    filters: FilterRequest | None,
    session_seed: int | None,
    limit: int | None,
    settings: Settings,
    has_more: bool = False,
) -> FeedResponse:
    storage = get_profile_storage(profile_id, settings)
    # A request without a seed opens a browsing session; only that one decays.
    session = FeedSession(
        storage,
        settings=settings,
        session_seed=session_seed,
        decay_on_open=session_seed is None,
    )
    try:
        criteria = filters.to_criteria() if filters else None
        ranked = session.build_feed(products, criteria)
    finally:
        session.close()

    total = len(ranked)
    if limit:
        ranked = ranked[:limit]

    logger.info(
        "Feed served",
        profile_id=profile_id,
        products=len(products),
        items=len(ranked),
        explored=session.engine.last_pass_explored,
    )

    return FeedResponse(
        items=[FeedProduct.from_deduped(item, i + 1) for i, item in enumerate(ranked)],
        total=total,
        categories=available_categories(products),
        sizes=available_sizes(products),
        session_seed=session.session_seed,
        explored=session.engine.last_pass_explored,
        has_more=has_more,
        request_id=str(uuid4()),
        profile_id=profile_id,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


@router.post("", response_model=FeedResponse)
def build_feed(
    request: FeedRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> FeedResponse:
    """
    Filter, deduplicate and rank the catalog rows loaded so far.

    **Algorithm:**
    1. Apply text/facet filters
    2. Collapse rows sold by several stores into one card
    3. Score cards from local preferences, view counts and jitter
    4. Occasionally interleave exploratory picks near the top

    Omit `session_seed` on the first call of a browsing session: stored
    preferences are decayed once and a fresh seed is returned. Pass that
    seed on every later call so the jitter stays stable between renders
    and preferences are not decayed again.
    """
    return _rank_products(
        request.profile_id,
        request.products,
        request.filters,
        request.session_seed,
        request.limit,
        settings,
    )


@router.get("/{profile_id}", response_model=FeedResponse)
async def get_feed(
    profile_id: str,
    settings: Annotated[Settings, Depends(get_settings)],
    source: Annotated[CatalogSource, Depends(get_catalog_source)],
    pages: int = Query(1, ge=1, le=20, description="Catalog pages to load"),
    session_seed: int | None = Query(None),
    q: str = Query("", description="Free-text search"),
    category: str | None = Query(None, description="Category chip"),
    limit: int | None = Query(None, ge=1),
) -> FeedResponse:
    """
    Load catalog pages from the catalog API and return them ranked.

    Pages are loaded one at a time until `pages` were fetched or the
    catalog runs out. A failing first page is reported as 502.
    """
    catalog = InfiniteCatalog(source)
    for _ in range(pages):
        if not await catalog.load_more():
            break

    if catalog.error is not None and not catalog.items:
        raise HTTPException(status_code=502, detail="Catalog API unavailable")

    filters = FilterRequest(query=q, chip_category=category)
    return _rank_products(
        profile_id,
        catalog.items,
        filters,
        session_seed,
        limit,
        settings,
        has_more=catalog.has_more,
    )
