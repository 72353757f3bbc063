"""Request and response models shared by the v1 endpoints."""

from pydantic import BaseModel, Field

from feed_service.models import DedupedProduct
from feed_service.services.facets import active_eta_text
from feed_service.services.filters import FilterCriteria


class FilterRequest(BaseModel):
    """Filters selected by the shopper."""

    query: str = ""
    categories: list[str] = Field(default_factory=list)
    chip_category: str | None = Field(None, description="Single category chip; null means all")
    genders: list[str] = Field(default_factory=list)
    sizes: list[str] = Field(default_factory=list)
    store_ids: list[int] | None = Field(
        None, description="Restrict to these stores (e.g. nearest store per brand)"
    )

    def to_criteria(self) -> FilterCriteria:
        return FilterCriteria(
            query=self.query,
            categories=set(self.categories),
            chip_category=self.chip_category,
            genders=set(self.genders),
            sizes=set(self.sizes),
            store_ids=set(self.store_ids) if self.store_ids else None,
        )


class FeedProduct(BaseModel):
    """A ranked, deduplicated product card."""

    id: int
    name: str
    store_name: str
    price: float | None = None
    photo_url: list[str] | str | None = None
    eta_text: str | None = None
    store_count: int = Field(..., description="Storefronts selling the same item")
    stores: list[str]
    position: int = Field(..., description="Position in the feed")

    @classmethod
    def from_deduped(cls, item: DedupedProduct, position: int) -> "FeedProduct":
        product = item.product
        return cls(
            id=product.id,
            name=product.name,
            store_name=product.store_name,
            price=product.price,
            photo_url=product.photo_url,
            eta_text=active_eta_text(product),
            store_count=item.store_count,
            stores=sorted(item.stores),
            position=position,
        )
