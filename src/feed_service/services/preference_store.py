"""Local preference store.

Keeps per-dimension weighted counters built from implicit feedback
(taps, filter choices) with half-life decay. Two persisted generations
coexist: a legacy blob of raw weights and a versioned blob of
``{"w": weight, "t": epoch_seconds}`` entries. Readers reconcile them
with ``max(legacy, versioned)``.
"""

import math
import time
from collections.abc import Callable, Mapping
from typing import Any

import orjson
import structlog

from feed_service.infrastructure.storage import StorageBackend
from feed_service.models import Dimension, PreferenceEntry, effective_weight
from shared.constants import LEGACY_PREFS_KEY, SECONDS_PER_DAY, VERSIONED_PREFS_KEY

logger = structlog.get_logger()

PreferenceSnapshot = dict[Dimension, dict[str, PreferenceEntry]]


def normalize_key(key: Any) -> str:
    """Case-folded lookup key used by every dimension."""
    if key is None:
        return ""
    return str(key).strip().casefold()


def _as_weight(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value) or value < 0:
        return None
    return value


def _load_json(raw: str | bytes | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        data = orjson.loads(raw)
    except orjson.JSONDecodeError:
        logger.warning("Discarding malformed preference blob")
        return {}
    return data if isinstance(data, dict) else {}


def _put(snapshot: PreferenceSnapshot, dim: Dimension, key: str, entry: PreferenceEntry) -> None:
    entries = snapshot.setdefault(dim, {})
    current = entries.get(key)
    if current is None or entry.weight > current.weight:
        entries[key] = entry


def parse_legacy(raw: str | bytes | None) -> PreferenceSnapshot:
    """Parse ``{dim: {key: number}}``; anything else is dropped."""
    snapshot: PreferenceSnapshot = {}
    for dim_name, entries in _load_json(raw).items():
        try:
            dim = Dimension(dim_name)
        except ValueError:
            continue
        if not isinstance(entries, dict):
            continue
        for key, value in entries.items():
            weight = _as_weight(value)
            if weight is not None:
                _put(snapshot, dim, normalize_key(key), PreferenceEntry(weight))
    return snapshot


def parse_versioned(raw: str | bytes | None, now: float) -> PreferenceSnapshot:
    """Parse ``{dim: {key: {"w": number, "t": epoch_seconds}}}``.

    A bare number is accepted as a weight stamped ``now``, as is an entry
    whose timestamp is missing or unusable.
    """
    snapshot: PreferenceSnapshot = {}
    for dim_name, entries in _load_json(raw).items():
        try:
            dim = Dimension(dim_name)
        except ValueError:
            continue
        if not isinstance(entries, dict):
            continue
        for key, value in entries.items():
            if isinstance(value, dict):
                weight = _as_weight(value.get("w"))
                stamp = _as_weight(value.get("t"))
            else:
                weight = _as_weight(value)
                stamp = None
            if weight is None:
                continue
            _put(
                snapshot,
                dim,
                normalize_key(key),
                PreferenceEntry(weight, stamp if stamp is not None else now),
            )
    return snapshot


def dump_versioned(snapshot: PreferenceSnapshot) -> str:
    payload = {
        dim.value: {key: {"w": e.weight, "t": e.last_updated} for key, e in entries.items()}
        for dim, entries in snapshot.items()
        if entries
    }
    return orjson.dumps(payload).decode()


def _copy(snapshot: PreferenceSnapshot) -> PreferenceSnapshot:
    return {dim: dict(entries) for dim, entries in snapshot.items()}


class PreferenceStore:
    """Decaying multi-dimensional preference counters for one profile.

    Every operation is best effort: a storage failure is logged and the
    operation becomes a no-op, leaving the in-memory state untouched.
    """

    def __init__(
        self,
        storage: StorageBackend,
        clock: Callable[[], float] = time.time,
    ):
        self.storage = storage
        self.clock = clock
        self._legacy: PreferenceSnapshot = parse_legacy(self._read(LEGACY_PREFS_KEY))
        self._versioned: PreferenceSnapshot = parse_versioned(
            self._read(VERSIONED_PREFS_KEY), self.clock()
        )
        self._unsubscribe = storage.subscribe(self._on_change)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _read(self, key: str) -> str | None:
        try:
            return self.storage.get(key)
        except Exception as e:
            logger.warning("Preference read failed", key=key, error=str(e))
            return None

    def _persist(self, snapshot: PreferenceSnapshot) -> bool:
        try:
            self.storage.set(VERSIONED_PREFS_KEY, dump_versioned(snapshot))
        except Exception as e:
            logger.warning("Preference write dropped", error=str(e))
            return False
        self._versioned = snapshot
        return True

    def _on_change(self, key: str, value: str | None) -> None:
        if key == VERSIONED_PREFS_KEY:
            self._versioned = parse_versioned(value, self.clock())
        elif key == LEGACY_PREFS_KEY:
            self._legacy = parse_legacy(value)

    def refresh(self) -> None:
        """Reload both generations from storage."""
        self._legacy = parse_legacy(self._read(LEGACY_PREFS_KEY))
        self._versioned = parse_versioned(self._read(VERSIONED_PREFS_KEY), self.clock())

    def close(self) -> None:
        self._unsubscribe()

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def bump(self, dimension: Dimension | str, key: Any, weight: float) -> bool:
        """Add ``weight`` to a key's versioned counter and stamp it now.

        Returns:
            True if the bump was persisted
        """
        try:
            dim = Dimension(dimension)
        except ValueError:
            logger.warning("Unknown preference dimension", dimension=str(dimension))
            return False

        amount = _as_weight(weight)
        normalized = normalize_key(key)
        if not amount or not normalized:
            return False

        updated = _copy(self._versioned)
        entries = updated.setdefault(dim, {})
        prior = entries.get(normalized)
        entries[normalized] = PreferenceEntry(
            weight=(prior.weight if prior else 0.0) + amount,
            last_updated=self.clock(),
        )
        return self._persist(updated)

    def bump_category(self, category: str, weight: float) -> bool:
        return self.bump(Dimension.CATEGORY, category, weight)

    def bump_store(self, store_name: str, weight: float) -> bool:
        return self.bump(Dimension.STORE, store_name, weight)

    def bump_gender(self, gender: str, weight: float) -> bool:
        return self.bump(Dimension.GENDER, gender, weight)

    def bump_size(self, size: str, weight: float) -> bool:
        return self.bump(Dimension.SIZE, size, weight)

    def bump_price_bucket(self, bucket: str, weight: float) -> bool:
        return self.bump(Dimension.PRICE, bucket, weight)

    def bump_eta_bucket(self, bucket: str, weight: float) -> bool:
        return self.bump(Dimension.ETA, bucket, weight)

    def bump_product(self, product_id: int | str, weight: float) -> bool:
        return self.bump(Dimension.PRODUCT, product_id, weight)

    def decay_all(self, half_life_days: float) -> bool:
        """Halve every versioned weight once per ``half_life_days`` elapsed.

        Decayed entries are restamped with the current time so a later call
        only decays the time elapsed since this one. Meant to run once per
        session load.
        """
        half_life = _as_weight(half_life_days)
        if not half_life:
            return False

        now = self.clock()
        updated: PreferenceSnapshot = {}
        for dim, entries in self._versioned.items():
            decayed: dict[str, PreferenceEntry] = {}
            for key, entry in entries.items():
                stamp = entry.last_updated if entry.last_updated is not None else now
                elapsed_days = max(0.0, now - stamp) / SECONDS_PER_DAY
                factor = 0.5 ** (elapsed_days / half_life)
                decayed[key] = PreferenceEntry(entry.weight * factor, now)
            updated[dim] = decayed
        return self._persist(updated)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def read_legacy(self) -> PreferenceSnapshot:
        return _copy(self._legacy)

    def read_versioned(self) -> PreferenceSnapshot:
        return _copy(self._versioned)

    def read_effective(self) -> dict[Dimension, dict[str, float]]:
        """Per-key ``max(legacy, versioned)`` for every dimension."""
        effective: dict[Dimension, dict[str, float]] = {}
        for dim in Dimension:
            legacy = self._legacy.get(dim, {})
            versioned = self._versioned.get(dim, {})
            effective[dim] = {
                key: effective_weight(legacy.get(key), versioned.get(key))
                for key in legacy.keys() | versioned.keys()
            }
        return effective


def effective_lookup(
    prefs: Mapping[Any, Mapping[str, Any]] | None, dim: Dimension
) -> dict[str, float]:
    """Sanitized weights for one dimension of an effective-preferences mapping.

    Accepts either :class:`Dimension` or raw string keys; invalid weights
    read as absent.
    """
    if not isinstance(prefs, Mapping):
        return {}
    entries = prefs.get(dim)
    if entries is None:
        entries = prefs.get(dim.value)
    if not isinstance(entries, Mapping):
        return {}
    cleaned: dict[str, float] = {}
    for key, value in entries.items():
        weight = _as_weight(value)
        if weight is not None:
            normalized = normalize_key(key)
            cleaned[normalized] = max(weight, cleaned.get(normalized, 0.0))
    return cleaned
