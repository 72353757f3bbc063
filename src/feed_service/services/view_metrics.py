"""Local product view counters shared across contexts of one profile."""

import math
from typing import Any

import orjson
import structlog

from feed_service.infrastructure.storage import StorageBackend
from shared.constants import VIEWS_KEY

logger = structlog.get_logger()


def parse_views(raw: str | bytes | None) -> dict[str, int]:
    """Parse ``{product_id: count}``; malformed data reads as empty."""
    if not raw:
        return {}
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError:
        logger.warning("Discarding malformed views blob")
        return {}
    if not isinstance(data, dict):
        return {}

    views: dict[str, int] = {}
    for product_id, count in data.items():
        if isinstance(count, bool) or not isinstance(count, (int, float)):
            continue
        if not math.isfinite(count) or count < 0:
            continue
        views[str(product_id)] = int(count)
    return views


class ViewMetrics:
    """Product view counts for one profile.

    Writes replace the whole persisted mapping and other contexts swap in
    the new snapshot when notified, so two contexts incrementing at the
    same instant can lose one increment (last write wins).
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage
        self._views = parse_views(self._read())
        self._unsubscribe = storage.subscribe(self._on_change)

    def _read(self) -> str | None:
        try:
            return self.storage.get(VIEWS_KEY)
        except Exception as e:
            logger.warning("Views read failed", error=str(e))
            return None

    def _on_change(self, key: str, value: str | None) -> None:
        if key == VIEWS_KEY:
            self._views = parse_views(value)

    def get_views(self) -> dict[str, int]:
        return dict(self._views)

    def count(self, product_id: Any) -> int:
        return self._views.get(str(product_id), 0)

    def bump_view(self, product_id: Any) -> bool:
        """Increment a product's view count by one and persist it.

        Returns:
            True if the new count was persisted
        """
        key = str(product_id)
        updated = dict(self._views)
        updated[key] = updated.get(key, 0) + 1
        try:
            self.storage.set(VIEWS_KEY, orjson.dumps(updated).decode())
        except Exception as e:
            logger.warning("View write dropped", product_id=key, error=str(e))
            return False
        self._views = updated
        return True

    def refresh(self) -> None:
        self._views = parse_views(self._read())

    def close(self) -> None:
        self._unsubscribe()
