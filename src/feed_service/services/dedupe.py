"""Cross-store product deduplication.

The same logical item is often listed by several storefronts. Rows are
grouped by an identity key and each group is collapsed into one
representative carrying the provenance of the whole group.
"""

import unicodedata
from collections.abc import Iterable

import structlog

from feed_service.models import CatalogProduct, DedupedProduct

logger = structlog.get_logger()

KEY_SEPARATOR = "|"


def normalize_text(value: str | None) -> str:
    """Strip diacritics, trim and case-fold."""
    decomposed = unicodedata.normalize("NFD", value or "")
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip().casefold()


def identity_key(product: CatalogProduct) -> str:
    """Key deciding that two rows are the same logical product.

    An explicit master/global/external SKU wins and is used verbatim;
    otherwise brand, name, color and size are normalized and joined.
    """
    for sku in (product.master_sku, product.global_sku, product.external_sku):
        if sku and sku.strip():
            return sku

    return KEY_SEPARATOR.join(
        normalize_text(part)
        for part in (product.brand, product.name, product.color, product.size)
    )


def _price(product: CatalogProduct) -> float:
    # Unknown prices compare as 0 and therefore win "cheapest".
    return product.price if product.price is not None else 0.0


def dedupe(
    products: Iterable[CatalogProduct | DedupedProduct],
    prefer_cheapest: bool = True,
) -> list[DedupedProduct]:
    """
    Collapse rows sharing an identity key into one representative each.

    Args:
        products: Catalog rows, or already deduplicated products whose
            provenance is merged in
        prefer_cheapest: Replace the representative when a strictly
            cheaper row of the same key shows up

    Returns:
        One entry per identity key, in order of first appearance
    """
    by_key: dict[str, DedupedProduct] = {}
    seen = 0

    for item in products:
        seen += 1
        if isinstance(item, DedupedProduct):
            product = item.product
            count = item.store_count
            stores = set(item.stores) or {product.store_name}
        else:
            product = item
            count = 1
            stores = {product.store_name}

        key = identity_key(product)
        existing = by_key.get(key)

        if existing is None:
            by_key[key] = DedupedProduct(product=product, store_count=count, stores=stores)
            continue

        existing.store_count += count
        existing.stores |= stores

        if prefer_cheapest and _price(product) < _price(existing.product):
            existing.product = product

    if seen != len(by_key):
        logger.debug("Deduplicated products", input=seen, output=len(by_key))

    return list(by_key.values())
