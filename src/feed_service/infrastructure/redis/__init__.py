"""Redis-backed profile storage with graceful degradation."""

from collections.abc import Callable
from typing import Any
from uuid import uuid4

import orjson
import redis
import structlog

from feed_service.config import get_settings
from feed_service.infrastructure.storage.base import (
    ChangeListener,
    ListenerRegistry,
    StorageError,
)

logger = structlog.get_logger()

CHANGES_CHANNEL = "feed:changes"

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis | None:
    """Get or create the global Redis client."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        try:
            _redis_client = redis.Redis.from_url(
                settings.redis_url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
                retry_on_timeout=True,
            )
            _redis_client.ping()
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning("Redis unavailable, falling back to in-process storage", error=str(e))
            _redis_client = None
    return _redis_client


def close_redis() -> None:
    """Close the Redis connection on shutdown."""
    global _redis_client
    if _redis_client:
        _redis_client.close()
        _redis_client = None


class RedisStorage:
    """Profile-scoped key/value storage in Redis.

    Every write is published on :data:`CHANGES_CHANNEL`. With ``listen``
    set, a pub/sub thread started on first subscription delivers writes
    made by other instances for the same namespace; request-scoped storage
    leaves it off and reads current values instead. Reads no-op to ``None``
    if Redis is unavailable, writes raise :class:`StorageError`.
    """

    def __init__(
        self,
        client: redis.Redis | None,
        namespace: str,
        channel: str = CHANGES_CHANNEL,
        listen: bool = True,
    ):
        self.client = client
        self.namespace = namespace
        self.channel = channel
        self.listen = listen
        self.listeners = ListenerRegistry()
        self._origin = uuid4().hex
        self._pubsub: Any = None
        self._thread: Any = None

    def _full_key(self, key: str) -> str:
        return f"feed:{self.namespace}:{key}"

    def get(self, key: str) -> str | None:
        if not self.client:
            return None
        try:
            return self.client.get(self._full_key(key))
        except redis.RedisError as e:
            raise StorageError(f"Redis get failed for {key}: {e}") from e

    def set(self, key: str, value: str) -> None:
        if not self.client:
            raise StorageError("Redis unavailable")
        message = orjson.dumps(
            {"origin": self._origin, "namespace": self.namespace, "key": key, "value": value}
        )
        try:
            self.client.set(self._full_key(key), value)
            self.client.publish(self.channel, message)
        except redis.RedisError as e:
            raise StorageError(f"Redis set failed for {key}: {e}") from e

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        unsubscribe = self.listeners.add(listener)
        self._start_listening()

        def stop() -> None:
            unsubscribe()
            if not len(self.listeners):
                self.close()

        return stop

    def _start_listening(self) -> None:
        if not self.listen or self._thread is not None or not self.client:
            return
        try:
            self._pubsub = self.client.pubsub(ignore_subscribe_messages=True)
            self._pubsub.subscribe(**{self.channel: self._on_message})
            self._thread = self._pubsub.run_in_thread(sleep_time=0.5, daemon=True)
        except redis.RedisError as e:
            logger.warning("Redis subscribe failed", channel=self.channel, error=str(e))
            self._pubsub = None
            self._thread = None

    def _on_message(self, message: dict[str, Any]) -> None:
        try:
            payload = orjson.loads(message["data"])
        except (orjson.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Ignoring malformed change message", error=str(e))
            return
        if not isinstance(payload, dict):
            return
        if payload.get("origin") == self._origin or payload.get("namespace") != self.namespace:
            return
        key = payload.get("key")
        if isinstance(key, str):
            value = payload.get("value")
            self.listeners.notify(key, value if isinstance(value, str) else None)

    def close(self) -> None:
        if self._thread is not None:
            self._thread.stop()
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._pubsub is not None:
            self._pubsub.close()
            self._pubsub = None

    def health_check(self) -> bool:
        if not self.client:
            return False
        try:
            return bool(self.client.ping())
        except Exception:
            return False
