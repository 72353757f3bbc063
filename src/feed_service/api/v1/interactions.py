"""Implicit feedback tracking API endpoints."""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from feed_service.api.v1.schemas import FilterRequest
from feed_service.config import Settings, get_settings
from feed_service.infrastructure.storage import get_profile_storage
from feed_service.models import CatalogProduct
from feed_service.services.feed import FeedSession

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Enums and Models
# =============================================================================


class InteractionType(str, Enum):
    """Types of implicit feedback."""

    TAP = "tap"
    PRODUCT_VIEW = "product_view"
    FILTERS_APPLIED = "filters_applied"
    CATEGORY_CHIP = "category_chip"
    GENDER_TOGGLE = "gender_toggle"


class InteractionRequest(BaseModel):
    """Request model for recording one interaction."""

    profile_id: str = Field(..., min_length=1, description="Browser profile identifier")
    interaction_type: InteractionType = Field(..., description="Type of interaction")
    product: CatalogProduct | None = Field(None, description="Tapped product (for tap)")
    product_id: int | None = Field(None, description="Viewed product (for product_view)")
    filters: FilterRequest | None = Field(None, description="Applied filters (for filters_applied)")
    category: str | None = Field(None, description="Chip category (for category_chip)")
    gender: str | None = Field(None, description="Toggled gender (for gender_toggle)")
    enabled: bool = Field(True, description="Whether the gender filter was switched on")
    weight: float | None = Field(None, gt=0, description="Override of the chip weight")


class InteractionResponse(BaseModel):
    """Response after recording an interaction."""

    success: bool
    interaction_type: InteractionType
    recorded_at: str


class PreferencesResponse(BaseModel):
    """Current local signals of a profile."""

    profile_id: str
    preferences: dict[str, dict[str, float]]
    views: dict[str, int]


# =============================================================================
# Endpoints
# =============================================================================


def _validate(interaction: InteractionRequest) -> None:
    kind = interaction.interaction_type
    if kind == InteractionType.TAP and interaction.product is None:
        raise HTTPException(status_code=400, detail="product is required for tap interactions")
    if kind == InteractionType.PRODUCT_VIEW and interaction.product_id is None:
        raise HTTPException(
            status_code=400, detail="product_id is required for product_view interactions"
        )
    if kind == InteractionType.FILTERS_APPLIED and interaction.filters is None:
        raise HTTPException(
            status_code=400, detail="filters is required for filters_applied interactions"
        )
    if kind == InteractionType.CATEGORY_CHIP and not interaction.category:
        raise HTTPException(
            status_code=400, detail="category is required for category_chip interactions"
        )
    if kind == InteractionType.GENDER_TOGGLE and not interaction.gender:
        raise HTTPException(
            status_code=400, detail="gender is required for gender_toggle interactions"
        )


@router.post("", response_model=InteractionResponse)
def track_interaction(
    interaction: InteractionRequest,
    settings: Annotated[Settings, Depends(get_settings)],
) -> InteractionResponse:
    """
    Record one implicit feedback signal for a profile.

    **Interaction Types:**
    - `tap`: a product card was tapped (bumps its category, store, gender,
      price and delivery buckets, the product itself, and one view)
    - `product_view`: the product page was opened (one view)
    - `filters_applied`: the filter sheet was applied
    - `category_chip`: a category chip was selected
    - `gender_toggle`: a gender filter was switched on or off

    Storage failures never fail the request; the signal is dropped.
    """
    _validate(interaction)

    storage = get_profile_storage(interaction.profile_id, settings)
    session = FeedSession(storage, settings=settings, decay_on_open=False)
    try:
        kind = interaction.interaction_type
        if kind == InteractionType.TAP:
            session.record_tap(interaction.product)
        elif kind == InteractionType.PRODUCT_VIEW:
            session.record_product_view(interaction.product_id)
        elif kind == InteractionType.FILTERS_APPLIED:
            session.record_filters_applied(interaction.filters.to_criteria())
        elif kind == InteractionType.CATEGORY_CHIP:
            if interaction.weight is not None:
                session.record_category_chip(interaction.category, interaction.weight)
            else:
                session.record_category_chip(interaction.category)
        else:
            session.record_gender_toggle(interaction.gender, interaction.enabled)
    finally:
        session.close()

    logger.debug(
        "Interaction recorded",
        profile_id=interaction.profile_id,
        interaction_type=interaction.interaction_type.value,
    )

    return InteractionResponse(
        success=True,
        interaction_type=interaction.interaction_type,
        recorded_at=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/{profile_id}/preferences", response_model=PreferencesResponse)
def get_profile_preferences(
    profile_id: str,
    settings: Annotated[Settings, Depends(get_settings)],
) -> PreferencesResponse:
    """
    Effective preference weights and local view counts of a profile.

    Useful for debugging why a feed is ordered the way it is.
    """
    storage = get_profile_storage(profile_id, settings)
    session = FeedSession(storage, settings=settings, decay_on_open=False)
    try:
        effective = session.preferences.read_effective()
        views = session.views.get_views()
    finally:
        session.close()

    return PreferencesResponse(
        profile_id=profile_id,
        preferences={dim.value: weights for dim, weights in effective.items()},
        views=views,
    )
