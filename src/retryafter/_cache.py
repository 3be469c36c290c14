"""
Key-value cache abstraction used by the gate to remember retry deadlines.

The gate only needs two operations from a cache: read a string value and
write one with a time-to-live. Any store (Redis, memcached, a database table)
can be plugged in by implementing `Cache`.

Available implementations:
    - InMemoryCache: Thread-safe, process-local dict with lazy TTL eviction.

Example:
    >>> from retryafter import InMemoryCache
    >>> cache = InMemoryCache()
    >>> cache.set("my-key", "2022-10-21T07:28:00.000000+00:00", ttl=3)
    >>> cache.get("my-key")
    '2022-10-21T07:28:00.000000+00:00'
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import override

logger = logging.getLogger(__name__)


class Cache(ABC):
    """
    Abstract base class for TTL key-value caches.

    No transactional guarantees are required from implementations.

    Example:
        >>> import redis
        >>> class RedisCache(Cache):
        ...     def __init__(self, client: redis.Redis):
        ...         self.client = client
        ...     def get(self, key):
        ...         value = self.client.get(key)
        ...         return value.decode() if value is not None else None
        ...     def set(self, key, value, ttl):
        ...         self.client.set(key, value, ex=ttl)
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        """
        Return the value stored under `key`, or None if absent or expired.
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str, ttl: int) -> None:
        """
        Store `value` under `key`, replacing any previous value.

        Args:
            key: The cache key.
            value: The string value to store.
            ttl: Time-to-live in whole seconds.
        """
        pass


class InMemoryCache(Cache):
    """
    Process-local cache backed by a dict.

    Entries expire `ttl` seconds after being written, measured on a monotonic
    clock so wall-clock adjustments do not affect eviction. Expired entries are
    evicted lazily on read.

    This cache is thread-safe and can be shared by concurrent requests.

    Args:
        timer: Monotonic time source in seconds (default: time.monotonic).
    """

    def __init__(self, timer: Callable[[], float] = time.monotonic):
        self._timer = timer
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    @override
    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None

            value, expires_at = entry
            if self._timer() >= expires_at:
                del self._entries[key]
                logger.debug(f"InMemoryCache: entry '{key}' expired and was evicted.")
                return None
            return value

    @override
    def set(self, key: str, value: str, ttl: int) -> None:
        assert key, "Cache key cannot be empty."
        assert ttl is not None, "ttl cannot be None."
        assert ttl > 0, "ttl must be greater than 0."

        with self._lock:
            self._entries[key] = (value, self._timer() + ttl)

    def delete(self, key: str) -> None:
        """Remove `key` from the cache (no-op if absent)."""
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove all entries."""
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
