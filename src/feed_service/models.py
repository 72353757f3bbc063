"""Domain models for the catalog feed.

Catalog rows are validated into :class:`CatalogProduct` so every optional
field has an explicit default instead of being looked up ad hoc.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Enums
# =============================================================================


class Dimension(str, Enum):
    """Implicit feedback axes; values are the persisted blob keys."""

    CATEGORY = "cat"
    STORE = "store"
    GENDER = "gender"
    SIZE = "size"
    PRICE = "price"
    ETA = "eta"
    PRODUCT = "product"


# =============================================================================
# Preferences
# =============================================================================


@dataclass(frozen=True)
class PreferenceEntry:
    """A weighted counter for one key.

    ``last_updated`` is ``None`` for legacy entries, which carry no
    timestamp and never decay.
    """

    weight: float
    last_updated: float | None = None


def effective_weight(
    legacy: PreferenceEntry | None, versioned: PreferenceEntry | None
) -> float:
    """Reconcile both schema generations for a key."""
    return max(
        legacy.weight if legacy else 0.0,
        versioned.weight if versioned else 0.0,
    )


# =============================================================================
# Catalog
# =============================================================================


def _split_csv(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split(",")
    return [str(part) for part in value if part is not None]


class CatalogProduct(BaseModel):
    """A catalog row as delivered by the catalog source."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int
    name: str = ""
    store_name: str = ""
    store_id: int | None = None
    price: float | None = Field(
        default=None, validation_alias=AliasChoices("price", "price_tag")
    )

    category: str | None = None
    categories: list[str] = Field(default_factory=list)
    gender: str | None = None
    sizes: list[str] = Field(default_factory=list)

    brand: str | None = None
    color: str | None = None
    size: str | None = None

    eta_text: str | None = None
    eta_text_runtime: str | None = None

    master_sku: str | None = None
    global_sku: str | None = None
    external_sku: str | None = None

    view_count: int | None = None
    photo_url: list[str] | str | None = None

    @field_validator("categories", mode="before")
    @classmethod
    def parse_categories(cls, v: Any) -> list[str]:
        return [c.strip() for c in _split_csv(v) if c and c.strip()]

    @field_validator("sizes", mode="before")
    @classmethod
    def parse_sizes(cls, v: Any) -> list[str]:
        return [s.strip().upper() for s in _split_csv(v) if s and s.strip()]

    @field_validator("price", mode="before")
    @classmethod
    def parse_price(cls, v: Any) -> float | None:
        if v is None or v == "":
            return None
        try:
            price = float(v)
        except (TypeError, ValueError):
            return None
        return price if math.isfinite(price) else None

    @field_validator("view_count", mode="before")
    @classmethod
    def parse_view_count(cls, v: Any) -> int | None:
        if isinstance(v, bool) or not isinstance(v, (int, float)) or not math.isfinite(v):
            return None
        return int(v)

    @field_validator("master_sku", "global_sku", "external_sku", mode="before")
    @classmethod
    def parse_sku(cls, v: Any) -> str | None:
        if v is None:
            return None
        return str(v)


@dataclass(eq=False)
class DedupedProduct:
    """Representative of every catalog row sharing one identity key."""

    product: CatalogProduct
    store_count: int = 1
    stores: set[str] = field(default_factory=set)

    @property
    def id(self) -> int:
        return self.product.id

    @property
    def store_name(self) -> str:
        return self.product.store_name

    @property
    def price(self) -> float | None:
        return self.product.price


@dataclass
class RankedItem:
    """Ephemeral score for one product in one ranking pass."""

    item: Any
    score: float
    features: dict[str, float] = field(default_factory=dict)
