"""Shared constants across the application."""

# Persisted record keys (one logical blob each)
LEGACY_PREFS_KEY = "look.prefs.v1"
VERSIONED_PREFS_KEY = "look.prefs.v2"
VIEWS_KEY = "look.metrics.v1.views"

# Ranking feature weights
FEATURE_WEIGHTS = {
    "category": 1.0,
    "store": 0.65,
    "gender": 0.45,
    "size": 0.35,
    "price": 0.3,
    "eta": 0.25,
    "product": 0.2,
    "trend": 0.15,
}

# Explore/exploit
EXPLORE_EPSILON = 0.08
EXPLORE_TREND_BOOST = 2.2
EXPLORE_MIN_ITEMS = 8
EXPLORE_MAX_PICKS = 6
EXPLORE_WINDOW_START = 4
EXPLORE_WINDOW_SIZE = 24

# Per-item noise
RANK_JITTER = 0.08

# Server-side view counts saturate the trend feature at this value
SERVER_VIEWS_SATURATION = 50

# Preference decay
PREFERENCE_HALF_LIFE_DAYS = 14.0
SECONDS_PER_DAY = 86400.0

# Implicit feedback weights
TAP_WEIGHTS = {
    "category": 1.2,
    "store": 1.0,
    "gender": 0.8,
    "price": 0.6,
    "eta": 0.5,
    "product": 0.25,
}
FILTER_APPLY_WEIGHTS = {
    "category": 0.5,
    "gender": 0.5,
    "size": 0.3,
}
GENDER_TOGGLE_WEIGHT = 1.0
CATEGORY_CHIP_WEIGHT = 0.7

# Price buckets (upper bounds, currency units)
PRICE_BUCKETS = [
    (50.0, "0-50"),
    (100.0, "50-100"),
    (200.0, "100-200"),
    (400.0, "200-400"),
    (800.0, "400-800"),
]
PRICE_BUCKET_TOP = "800+"

# Delivery ETA buckets (upper bounds in minutes)
ETA_BUCKETS = [
    (30, "30m"),
    (60, "1h"),
    (120, "2h"),
    (240, "4h"),
    (24 * 60, "1d"),
]
ETA_BUCKET_TOP = "1d+"
UNKNOWN_BUCKET = "unknown"

# Size ordering used for facet lists
SIZE_ORDER = ["PP", "P", "M", "G", "GG"]

# Catalog pagination
DEFAULT_PAGE_SIZE = 24
MAX_PAGE_SIZE = 120
