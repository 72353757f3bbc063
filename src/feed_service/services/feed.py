"""Feed session: the glue between shopper interactions and the ranked feed."""

import time
from collections.abc import Callable, Iterable

import numpy as np
import structlog

from feed_service.config import Settings, get_settings
from feed_service.infrastructure.storage import StorageBackend
from feed_service.models import CatalogProduct, DedupedProduct
from feed_service.services.dedupe import dedupe
from feed_service.services.facets import (
    active_eta_text,
    eta_bucket,
    price_bucket,
    primary_category,
)
from feed_service.services.filters import FilterCriteria, apply_filters
from feed_service.services.preference_store import PreferenceStore
from feed_service.services.ranking import RankingEngine
from feed_service.services.view_metrics import ViewMetrics
from shared.constants import (
    CATEGORY_CHIP_WEIGHT,
    FILTER_APPLY_WEIGHTS,
    GENDER_TOGGLE_WEIGHT,
    TAP_WEIGHTS,
)

logger = structlog.get_logger()


def new_session_seed() -> int:
    return int(np.random.default_rng().integers(1_000_000_000))


class FeedSession:
    """Personalized feed state for one profile during one browsing session.

    Opening a session decays stored preferences once; every
    :meth:`build_feed` call recomputes the order from the current state.
    Backends that detect foreign writes by polling (file storage) are
    polled before each build so a long-lived session sees other writers.
    """

    def __init__(
        self,
        storage: StorageBackend,
        settings: Settings | None = None,
        session_seed: int | None = None,
        rng: np.random.Generator | None = None,
        clock: Callable[[], float] = time.time,
        decay_on_open: bool = True,
    ):
        self.settings = settings or get_settings()
        self.storage = storage
        self.session_seed = session_seed if session_seed is not None else new_session_seed()
        self.preferences = PreferenceStore(storage, clock=clock)
        self.views = ViewMetrics(storage)
        self.engine = RankingEngine(
            epsilon=self.settings.explore_epsilon,
            jitter=self.settings.rank_jitter,
            rng=rng,
        )
        if decay_on_open:
            self.preferences.decay_all(self.settings.preference_half_life_days)

    def build_feed(
        self,
        products: Iterable[CatalogProduct],
        criteria: FilterCriteria | None = None,
    ) -> list[DedupedProduct]:
        """Filter, deduplicate and rank the loaded catalog."""
        self._poll_storage()
        filtered = apply_filters(products, criteria)
        deduped = dedupe(filtered, prefer_cheapest=self.settings.dedupe_prefer_cheapest)
        ranked = self.engine.rank(
            deduped,
            self.preferences.read_effective(),
            self.views.get_views(),
            self.session_seed,
        )
        logger.debug(
            "Feed built",
            filtered=len(filtered),
            deduped=len(deduped),
            explored=self.engine.last_pass_explored,
        )
        return ranked

    def _poll_storage(self) -> bool:
        poll = getattr(self.storage, "poll", None)
        if not callable(poll):
            return False
        try:
            poll()
        except Exception as e:
            logger.warning("Storage poll failed", error=str(e))
        return True

    def refresh(self) -> None:
        """Pick up writes other contexts made since the session opened."""
        if not self._poll_storage():
            self.preferences.refresh()
            self.views.refresh()

    def record_tap(self, product: CatalogProduct) -> None:
        """A product card was tapped: strengthen its facets and count a view."""
        prefs = self.preferences
        category = primary_category(product)
        if category:
            prefs.bump_category(category, TAP_WEIGHTS["category"])
        prefs.bump_store(product.store_name, TAP_WEIGHTS["store"])
        if product.gender:
            prefs.bump_gender(product.gender, TAP_WEIGHTS["gender"])
        prefs.bump_price_bucket(price_bucket(product.price), TAP_WEIGHTS["price"])
        prefs.bump_eta_bucket(eta_bucket(active_eta_text(product)), TAP_WEIGHTS["eta"])
        prefs.bump_product(product.id, TAP_WEIGHTS["product"])
        self.views.bump_view(product.id)

    def record_product_view(self, product_id: int | str) -> None:
        """The product page was opened."""
        self.views.bump_view(product_id)

    def record_filters_applied(self, criteria: FilterCriteria) -> None:
        for category in criteria.categories:
            self.preferences.bump_category(category, FILTER_APPLY_WEIGHTS["category"])
        for gender in criteria.genders:
            self.preferences.bump_gender(gender, FILTER_APPLY_WEIGHTS["gender"])
        for size in criteria.sizes:
            self.preferences.bump_size(size, FILTER_APPLY_WEIGHTS["size"])

    def record_category_chip(self, category: str, weight: float = CATEGORY_CHIP_WEIGHT) -> None:
        self.preferences.bump_category(category, weight)

    def record_gender_toggle(self, gender: str, enabled: bool) -> None:
        """Only switching a gender filter on counts as a signal."""
        if enabled:
            self.preferences.bump_gender(gender, GENDER_TOGGLE_WEIGHT)

    def close(self) -> None:
        self.preferences.close()
        self.views.close()
