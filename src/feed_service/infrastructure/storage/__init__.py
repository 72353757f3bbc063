"""Profile storage backends and the factory the API uses to pick one."""

import re

import structlog

from feed_service.config import Settings
from feed_service.infrastructure.storage.base import (
    ChangeListener,
    ListenerRegistry,
    StorageBackend,
    StorageError,
)
from feed_service.infrastructure.storage.file import FileStorage
from feed_service.infrastructure.storage.memory import InMemoryHub, InMemoryStorage

logger = structlog.get_logger()

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")

# One hub per profile so every request for that profile sees the same state
_memory_hubs: dict[str, InMemoryHub] = {}


def _memory_storage(profile_id: str) -> InMemoryStorage:
    hub = _memory_hubs.get(profile_id)
    if hub is None:
        hub = _memory_hubs[profile_id] = InMemoryHub()
    return InMemoryStorage(hub)


def get_profile_storage(profile_id: str, settings: Settings) -> StorageBackend:
    """Open the configured storage backend for one profile.

    The backend lives for one request: Redis storage does not start a
    change listener and file storage reads the files as they are now.
    """
    if settings.storage_backend == "file":
        return FileStorage(settings.storage_dir / _UNSAFE.sub("_", profile_id))

    if settings.storage_backend == "redis":
        from feed_service.infrastructure.redis import RedisStorage, get_redis_client

        client = get_redis_client()
        if client is not None:
            return RedisStorage(client, namespace=profile_id, listen=False)
        logger.warning("Using in-process storage for profile", profile_id=profile_id)

    return _memory_storage(profile_id)


def reset_memory_storage() -> None:
    """Drop every in-process hub."""
    _memory_hubs.clear()


__all__ = [
    "ChangeListener",
    "FileStorage",
    "InMemoryHub",
    "InMemoryStorage",
    "ListenerRegistry",
    "StorageBackend",
    "StorageError",
    "get_profile_storage",
    "reset_memory_storage",
]
