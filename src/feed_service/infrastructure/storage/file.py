"""File-backed storage for a native client: one JSON file per key."""

import os
from collections.abc import Callable
from pathlib import Path
from urllib.parse import quote, unquote

import structlog

from feed_service.infrastructure.storage.base import (
    ChangeListener,
    ListenerRegistry,
    StorageError,
)

logger = structlog.get_logger()

SUFFIX = ".json"


class FileStorage:
    """Stores each key as ``<directory>/<key>.json``.

    Other processes writing into the same directory are picked up by
    :meth:`poll`, which announces every file whose modification stamp
    differs from the last one this instance observed. A feed session polls
    before each build; request-scoped instances simply read the files.
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)
        self.listeners = ListenerRegistry()
        self._seen: dict[str, int] = {}

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='.-_')}{SUFFIX}"

    def _stamp(self, path: Path) -> int | None:
        try:
            return path.stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def get(self, key: str) -> str | None:
        path = self._path(key)
        try:
            value = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Cannot read {path}: {e}") from e
        stamp = self._stamp(path)
        if stamp is not None:
            self._seen[key] = stamp
        return value

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_name(path.name + ".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"Cannot write {path}: {e}") from e
        stamp = self._stamp(path)
        if stamp is not None:
            self._seen[key] = stamp

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        return self.listeners.add(listener)

    def poll(self) -> int:
        """Announce keys changed on disk by another writer.

        Returns:
            Number of notifications emitted
        """
        if not self.directory.is_dir():
            return 0

        current: dict[str, Path] = {}
        for path in self.directory.glob(f"*{SUFFIX}"):
            current[unquote(path.name[: -len(SUFFIX)])] = path

        emitted = 0
        for key, path in current.items():
            stamp = self._stamp(path)
            if stamp is None or self._seen.get(key) == stamp:
                continue
            self._seen[key] = stamp
            try:
                value = path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("Cannot read changed file", key=key, error=str(e))
                continue
            self.listeners.notify(key, value)
            emitted += 1

        for key in [k for k in self._seen if k not in current]:
            del self._seen[key]
            self.listeners.notify(key, None)
            emitted += 1

        return emitted
