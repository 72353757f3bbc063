"""Facet extraction and bucketing for catalog products."""

import re

from feed_service.models import CatalogProduct
from shared.constants import (
    ETA_BUCKET_TOP,
    ETA_BUCKETS,
    PRICE_BUCKET_TOP,
    PRICE_BUCKETS,
    SIZE_ORDER,
    UNKNOWN_BUCKET,
)

_DURATION = re.compile(
    r"(\d+(?:[.,]\d+)?)\s*(minutos|minuto|mins|min|m|horas|hora|hrs|hr|h|dias|dia|days|day|d)",
    re.IGNORECASE,
)
_UNIT_MINUTES = {"m": 1, "h": 60, "d": 24 * 60}
_SAME_DAY = ("hoje", "today")
_NEXT_DAY = ("amanh", "tomorrow")


def categories_of(product: CatalogProduct) -> list[str]:
    """Lower-cased categories, list entries first, without repeats."""
    seen: dict[str, None] = {}
    for raw in [*product.categories, product.category or ""]:
        category = raw.strip().lower()
        if category:
            seen.setdefault(category, None)
    return list(seen)


def primary_category(product: CatalogProduct) -> str:
    categories = categories_of(product)
    return categories[0] if categories else ""


def size_list(product: CatalogProduct) -> list[str]:
    """Upper-cased sizes; a lone ``size`` field stands in for an empty list."""
    if product.sizes:
        return list(product.sizes)
    if product.size and product.size.strip():
        return [product.size.strip().upper()]
    return []


def sort_sizes(sizes: set[str]) -> list[str]:
    ordered = [s for s in SIZE_ORDER if s in sizes]
    return ordered + sorted(s for s in sizes if s not in SIZE_ORDER)


def price_bucket(price: float | None) -> str:
    if price is None or price < 0:
        return UNKNOWN_BUCKET
    for upper, label in PRICE_BUCKETS:
        if price < upper:
            return label
    return PRICE_BUCKET_TOP


def active_eta_text(product: CatalogProduct) -> str | None:
    """Runtime delivery estimate when the catalog computed one, else the static one."""
    for text in (product.eta_text_runtime, product.eta_text):
        if text and text.strip():
            return text
    return None


def eta_minutes(text: str | None) -> int | None:
    """Longest duration mentioned in a delivery estimate, in minutes."""
    if not text:
        return None
    durations = [
        float(amount.replace(",", ".")) * _UNIT_MINUTES[unit[0].lower()]
        for amount, unit in _DURATION.findall(text)
    ]
    if durations:
        return int(max(durations))

    lowered = text.lower()
    if any(word in lowered for word in _NEXT_DAY):
        return 2 * 24 * 60
    if any(word in lowered for word in _SAME_DAY):
        return 24 * 60
    return None


def eta_bucket(text: str | None) -> str:
    minutes = eta_minutes(text)
    if minutes is None:
        return UNKNOWN_BUCKET
    for upper, label in ETA_BUCKETS:
        if minutes <= upper:
            return label
    return ETA_BUCKET_TOP
