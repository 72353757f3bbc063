"""In-process storage shared between contexts through a hub."""

import threading
import weakref
from collections.abc import Callable

from feed_service.infrastructure.storage.base import (
    ChangeListener,
    ListenerRegistry,
    StorageError,
)


class InMemoryHub:
    """Backing data for several contexts of one profile (e.g. open tabs).

    A write from one context is announced to every other attached context,
    never to the writer itself.
    """

    def __init__(self, quota_bytes: int | None = None):
        self.quota_bytes = quota_bytes
        self._data: dict[str, str] = {}
        self._contexts: "weakref.WeakSet[InMemoryStorage]" = weakref.WeakSet()
        self._lock = threading.RLock()

    def attach(self, context: "InMemoryStorage") -> None:
        with self._lock:
            self._contexts.add(context)

    def read(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def write(self, origin: "InMemoryStorage", key: str, value: str) -> None:
        with self._lock:
            if self.quota_bytes is not None:
                used = sum(len(v.encode()) for k, v in self._data.items() if k != key)
                if used + len(value.encode()) > self.quota_bytes:
                    raise StorageError(f"Quota exceeded writing {key}")
            self._data[key] = value
            others = [ctx for ctx in self._contexts if ctx is not origin]

        for ctx in others:
            ctx.listeners.notify(key, value)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()


class InMemoryStorage:
    """One context's view of an :class:`InMemoryHub`."""

    def __init__(self, hub: InMemoryHub | None = None, available: bool = True):
        self.hub = hub or InMemoryHub()
        self.available = available
        self.listeners = ListenerRegistry()
        self.hub.attach(self)

    def get(self, key: str) -> str | None:
        if not self.available:
            raise StorageError("Storage unavailable")
        return self.hub.read(key)

    def set(self, key: str, value: str) -> None:
        if not self.available:
            raise StorageError("Storage unavailable")
        self.hub.write(self, key, value)

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        return self.listeners.add(listener)
