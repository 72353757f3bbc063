"""Text and facet filtering applied before deduplication and ranking."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from feed_service.models import CatalogProduct
from feed_service.services.facets import categories_of, size_list, sort_sizes


@dataclass
class FilterCriteria:
    """What the shopper narrowed the catalog down to.

    ``chip_category`` is only consulted when no explicit category set is
    selected; ``None`` means every category.
    """

    query: str = ""
    categories: set[str] = field(default_factory=set)
    chip_category: str | None = None
    genders: set[str] = field(default_factory=set)
    sizes: set[str] = field(default_factory=set)
    store_ids: set[int] | None = None


def matches(product: CatalogProduct, criteria: FilterCriteria) -> bool:
    if criteria.store_ids:
        if product.store_id is None or product.store_id not in criteria.store_ids:
            return False

    categories = categories_of(product)

    query = criteria.query.strip().lower()
    if query:
        hit = (
            query in product.name.lower()
            or query in product.store_name.lower()
            or any(query in c for c in categories)
        )
        if not hit:
            return False

    if criteria.categories:
        wanted = {c.strip().lower() for c in criteria.categories}
        if not wanted.intersection(categories):
            return False
    elif criteria.chip_category:
        if criteria.chip_category.strip().lower() not in categories:
            return False

    if criteria.genders:
        gender = (product.gender or "").lower()
        if not gender or gender not in {g.lower() for g in criteria.genders}:
            return False

    if criteria.sizes:
        sizes = size_list(product)
        if not sizes or not {s.upper() for s in criteria.sizes}.intersection(sizes):
            return False

    return True


def apply_filters(
    products: Iterable[CatalogProduct], criteria: FilterCriteria | None = None
) -> list[CatalogProduct]:
    """Keep the products matching every active criterion, in input order."""
    if criteria is None:
        return list(products)
    return [p for p in products if matches(p, criteria)]


def available_categories(products: Iterable[CatalogProduct]) -> list[str]:
    """Sorted category chips present in the loaded catalog."""
    found: set[str] = set()
    for product in products:
        found.update(categories_of(product))
    return sorted(found)


def available_sizes(products: Iterable[CatalogProduct]) -> list[str]:
    """Sizes present in the loaded catalog, standard sizes first."""
    found: set[str] = set()
    for product in products:
        found.update(size_list(product))
    return sort_sizes(found)
