"""Storage backend contract shared by every persistence implementation."""

from collections.abc import Callable
from typing import Protocol

import structlog

logger = structlog.get_logger()

# Called with (key, new_raw_value); value is None when the key was removed.
ChangeListener = Callable[[str, str | None], None]


class StorageError(Exception):
    """Raised by a backend when a read or write cannot be completed."""


class StorageBackend(Protocol):
    """Key/value text storage with change notifications from other contexts."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]: ...


class ListenerRegistry:
    """Holds change listeners and fans notifications out to them."""

    def __init__(self) -> None:
        self._listeners: list[ChangeListener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, key: str, value: str | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(key, value)
            except Exception as e:
                logger.warning("Storage listener failed", key=key, error=str(e))
