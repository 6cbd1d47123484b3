"""
Key/value state for the TraiPulse policy cooldown.
Redis in deployment, an in-process dict in tests and on-device runs.
"""

import json
import logging
import threading
import time
from datetime import timedelta
from typing import Any, Optional

import redis

from traipulse import config
from traipulse.exceptions import StateStoreError

logger = logging.getLogger(__name__)


class InMemoryStateStore:
    """Process-local store guarded by a lock."""

    def __init__(self, initial: Optional[dict] = None):
        self._values: dict[str, Any] = dict(initial or {})
        self._expires: dict[str, float] = {}
        self._lock = threading.Lock()

    def _evict_if_expired(self, key: str):
        expires = self._expires.get(key)
        if expires is not None and expires <= time.monotonic():
            self._values.pop(key, None)
            self._expires.pop(key, None)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            self._evict_if_expired(key)
            return self._values.get(key)

    def set(self, key: str, value: Any):
        with self._lock:
            self._values[key] = value
            self._expires.pop(key, None)

    def set_if_absent(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> bool:
        """Store `value` only when `key` is unset.  True when this call stored it."""
        with self._lock:
            self._evict_if_expired(key)
            if key in self._values:
                return False
            self._values[key] = value
            if ttl is not None:
                self._expires[key] = time.monotonic() + ttl.total_seconds()
            return True

    def delete(self, key: str):
        with self._lock:
            self._values.pop(key, None)
            self._expires.pop(key, None)


class RedisStateStore:
    """Redis-backed store.  Values are JSON encoded, keys are namespaced."""

    def __init__(self, client: Optional["redis.Redis"] = None, url: Optional[str] = None,
                 namespace: str = "traipulse"):
        """Initialize store.

        Args:
            client: Existing redis client (tests pass a mock)
            url: Redis URL, defaults to TRAIPULSE_REDIS_URL
            namespace: Key prefix
        """
        self.client = client or redis.from_url(url or config.REDIS_URL, decode_responses=True)
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[Any]:
        """Get value from store.

        Raises:
            StateStoreError: when redis is unreachable or the value is corrupt
        """
        try:
            value = self.client.get(self._key(key))
        except redis.RedisError as e:
            raise StateStoreError("get", key, str(e)) from e
        if value is None:
            return None
        try:
            return json.loads(value)
        except (TypeError, ValueError) as e:
            raise StateStoreError("get", key, f"undecodable value: {e}") from e

    def set(self, key: str, value: Any):
        """Set value in store (no expiry).

        Raises:
            StateStoreError: when redis is unreachable
        """
        try:
            self.client.set(self._key(key), json.dumps(value))
        except redis.RedisError as e:
            raise StateStoreError("set", key, str(e)) from e

    def set_if_absent(self, key: str, value: Any, ttl: Optional[timedelta] = None) -> bool:
        """Atomic SET NX (with PX when `ttl` is given).  True when this call stored it.

        Raises:
            StateStoreError: when redis is unreachable
        """
        px = int(ttl.total_seconds() * 1000) if ttl is not None else None
        try:
            return bool(self.client.set(self._key(key), json.dumps(value), nx=True, px=px))
        except redis.RedisError as e:
            raise StateStoreError("set_if_absent", key, str(e)) from e

    def delete(self, key: str):
        try:
            self.client.delete(self._key(key))
        except redis.RedisError as e:
            raise StateStoreError("delete", key, str(e)) from e


def build_state_store(url: Optional[str] = None):
    """Connect to redis if reachable, otherwise keep state in process."""
    try:
        client = redis.from_url(url or config.REDIS_URL, decode_responses=True)
        client.ping()
        logger.info("✓ Redis state store connected")
        return RedisStateStore(client=client)
    except redis.RedisError as e:
        logger.warning(f"✗ Redis unavailable: {e} (using in-process state)")
        return InMemoryStateStore()
