"""Business logic services."""

from feed_service.services.catalog import HttpCatalogSource, InfiniteCatalog
from feed_service.services.dedupe import dedupe, identity_key
from feed_service.services.feed import FeedSession
from feed_service.services.filters import FilterCriteria, apply_filters
from feed_service.services.noise import noise
from feed_service.services.preference_store import PreferenceStore
from feed_service.services.ranking import RankingEngine, rank
from feed_service.services.view_metrics import ViewMetrics

__all__ = [
    "FeedSession",
    "FilterCriteria",
    "HttpCatalogSource",
    "InfiniteCatalog",
    "PreferenceStore",
    "RankingEngine",
    "ViewMetrics",
    "apply_filters",
    "dedupe",
    "identity_key",
    "noise",
    "rank",
]
