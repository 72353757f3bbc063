"""Multi-signal ranking engine with an explore/exploit pass.

Each product gets eight features in [0, 1]: seven preference dimensions
normalized by the strongest key of their dimension, plus a trend signal
from local and server view counts. The composite score is the weighted
sum plus a small deterministic jitter. Once per pass a coin flip may
switch on exploration, which boosts the trend weight and pulls a few
items from the upper-middle of the list up near the front.
"""

import math
from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
import structlog

from feed_service.models import CatalogProduct, DedupedProduct, Dimension, RankedItem
from feed_service.services.facets import (
    active_eta_text,
    eta_bucket,
    price_bucket,
    primary_category,
)
from feed_service.services.noise import noise
from feed_service.services.preference_store import effective_lookup, normalize_key
from shared.constants import (
    EXPLORE_EPSILON,
    EXPLORE_MAX_PICKS,
    EXPLORE_MIN_ITEMS,
    EXPLORE_TREND_BOOST,
    EXPLORE_WINDOW_SIZE,
    EXPLORE_WINDOW_START,
    FEATURE_WEIGHTS,
    RANK_JITTER,
    SERVER_VIEWS_SATURATION,
)

logger = structlog.get_logger()

FEATURES = ("category", "store", "gender", "size", "price", "eta", "product", "trend")

# Feature name -> preference dimension it reads
FEATURE_DIMENSIONS = {
    "category": Dimension.CATEGORY,
    "store": Dimension.STORE,
    "gender": Dimension.GENDER,
    "size": Dimension.SIZE,
    "price": Dimension.PRICE,
    "eta": Dimension.ETA,
    "product": Dimension.PRODUCT,
}

# Stored size preferences exist but do not feed the score yet.
INERT_FEATURES = frozenset({"size"})


def _base(item: CatalogProduct | DedupedProduct) -> CatalogProduct:
    return item.product if isinstance(item, DedupedProduct) else item


def product_keys(product: CatalogProduct) -> dict[Dimension, str]:
    """Preference keys a product is scored under, one per dimension."""
    return {
        Dimension.CATEGORY: normalize_key(primary_category(product)),
        Dimension.STORE: normalize_key(product.store_name),
        Dimension.GENDER: normalize_key(product.gender),
        Dimension.SIZE: "",
        Dimension.PRICE: normalize_key(price_bucket(product.price)),
        Dimension.ETA: normalize_key(eta_bucket(active_eta_text(product))),
        Dimension.PRODUCT: normalize_key(product.id),
    }


def _clean_views(views: Mapping[Any, Any] | None) -> dict[str, float]:
    if not isinstance(views, Mapping):
        return {}
    cleaned: dict[str, float] = {}
    for key, value in views.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        if math.isfinite(value) and value > 0:
            cleaned[str(key)] = float(value)
    return cleaned


def trend_feature(
    product: CatalogProduct, local_views: Mapping[str, float], local_max: float
) -> float:
    local = local_views.get(str(product.id), 0.0) / max(1.0, local_max)
    remote = product.view_count or 0
    server = min(remote / SERVER_VIEWS_SATURATION, 1.0) if remote > 0 else 0.0
    return max(local, server)


class RankingEngine:
    """Orders products for one session from local preference and view signals.

    Args:
        weights: Overrides for individual feature weights
        epsilon: Probability that a pass explores
        jitter: Scale of the per-item deterministic noise
        rng: Random source for the explore coin flip and reshuffle picks
    """

    def __init__(
        self,
        weights: Mapping[str, float] | None = None,
        epsilon: float = EXPLORE_EPSILON,
        jitter: float = RANK_JITTER,
        rng: np.random.Generator | None = None,
    ):
        self.weights = {**FEATURE_WEIGHTS, **(weights or {})}
        self.epsilon = epsilon
        self.jitter = jitter
        self.rng = rng if rng is not None else np.random.default_rng()
        self.last_pass_explored = False

    def _weight_vector(self, explore: bool) -> np.ndarray:
        vector = np.array([self.weights[name] for name in FEATURES], dtype=np.float64)
        if explore:
            vector[FEATURES.index("trend")] *= EXPLORE_TREND_BOOST
        return vector

    def score_all(
        self,
        products: Sequence[CatalogProduct | DedupedProduct],
        prefs: Mapping[Any, Mapping[str, Any]] | None,
        views: Mapping[Any, Any] | None,
        session_seed: int,
        explore: bool = False,
    ) -> list[RankedItem]:
        """Score every product without reordering."""
        if not products:
            return []

        lookups = {dim: effective_lookup(prefs, dim) for dim in Dimension}
        denominators = {
            dim: max([1.0, *weights.values()]) for dim, weights in lookups.items()
        }
        local_views = _clean_views(views)
        local_max = max([1.0, *local_views.values()])

        matrix = np.zeros((len(products), len(FEATURES)), dtype=np.float64)
        jitter = np.zeros(len(products), dtype=np.float64)

        for row, item in enumerate(products):
            product = _base(item)
            keys = product_keys(product)
            for col, name in enumerate(FEATURES[:-1]):
                if name in INERT_FEATURES:
                    continue
                dim = FEATURE_DIMENSIONS[name]
                matrix[row, col] = lookups[dim].get(keys[dim], 0.0) / denominators[dim]
            matrix[row, -1] = trend_feature(product, local_views, local_max)
            jitter[row] = noise(product.id, session_seed) * self.jitter

        scores = matrix @ self._weight_vector(explore) + jitter

        return [
            RankedItem(
                item=item,
                score=float(scores[row]),
                features=dict(zip(FEATURES, matrix[row].tolist())),
            )
            for row, item in enumerate(products)
        ]

    def _explore_window(self, injected: list[Any]) -> list[Any]:
        picks = min(EXPLORE_MAX_PICKS, len(injected) // EXPLORE_MIN_ITEMS)
        for k in range(picks):
            window = min(EXPLORE_WINDOW_SIZE, len(injected) - EXPLORE_WINDOW_START - 1)
            idx = EXPLORE_WINDOW_START + int(self.rng.integers(window))
            item = injected.pop(idx)
            injected.insert(2 * k + 1, item)
        return injected

    def rank(
        self,
        products: Sequence[CatalogProduct | DedupedProduct],
        prefs: Mapping[Any, Mapping[str, Any]] | None,
        views: Mapping[Any, Any] | None,
        session_seed: int,
    ) -> list[CatalogProduct | DedupedProduct]:
        """
        Order products by composite score, then maybe explore.

        Args:
            products: Deduplicated products to order
            prefs: Effective preference weights per dimension
            views: Local product view counts
            session_seed: Seed of the per-item noise

        Returns:
            A permutation of ``products``; the input order on internal error
        """
        items = list(products)
        explore = bool(self.rng.random() < self.epsilon)
        self.last_pass_explored = explore

        try:
            scored = self.score_all(items, prefs, views, session_seed, explore)
        except Exception as e:
            logger.error("Error during ranking, keeping input order", error=str(e))
            return items

        scored.sort(key=lambda r: r.score, reverse=True)
        ordered = [r.item for r in scored]

        if explore and len(ordered) > EXPLORE_MIN_ITEMS:
            ordered = self._explore_window(ordered)
            logger.debug("Exploration pass applied", items=len(ordered))

        return ordered


def rank(
    products: Sequence[CatalogProduct | DedupedProduct],
    prefs: Mapping[Any, Mapping[str, Any]] | None,
    views: Mapping[Any, Any] | None,
    session_seed: int,
    rng: np.random.Generator | None = None,
    epsilon: float = EXPLORE_EPSILON,
    jitter: float = RANK_JITTER,
) -> list[CatalogProduct | DedupedProduct]:
    """One-off ranking pass with the default feature weights."""
    engine = RankingEngine(epsilon=epsilon, jitter=jitter, rng=rng)
    return engine.rank(products, prefs, views, session_seed)
