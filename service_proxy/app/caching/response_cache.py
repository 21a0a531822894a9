"""
Bounded, time-expiring response cache for the proxy.
"""

import threading
import time
from typing import Callable, Optional

from cachetools import TTLCache

from shared.logging import get_logger
from service_proxy.app.models import CachedResponse, CacheStats


class ResponseCache:
    """In-process TTL + LRU cache of upstream responses.

    ``cachetools.TTLCache`` is not thread-safe on its own, so every access goes
    through ``_lock``. The lock is only held for dictionary operations, never
    across I/O or an ``await``.

    Eviction when full: expired entries are dropped first, then the least
    recently used live entry.
    """

    def __init__(
        self,
        ttl_seconds: int,
        max_capacity: int,
        *,
        timer: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_capacity <= 0:
            raise ValueError("max_capacity must be positive")

        self.ttl_seconds = ttl_seconds
        self.max_capacity = max_capacity
        self.logger = get_logger("proxy.cache")

        self._lock = threading.Lock()
        self._entries: TTLCache = TTLCache(maxsize=max_capacity, ttl=ttl_seconds, timer=timer)

    def get(self, key: str) -> Optional[CachedResponse]:
        """Return the live entry for ``key``, or None if absent or expired."""
        with self._lock:
            return self._entries.get(key)

    def insert(self, key: str, value: CachedResponse) -> None:
        """Store ``value`` under ``key`` with a fresh TTL; last insert wins."""
        with self._lock:
            self._entries[key] = value
        self.logger.debug("Cached response", key=key, status=value.status, size=len(value.body))

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            self._entries.expire()
            return len(self._entries)

    def stats(self) -> CacheStats:
        """Point-in-time statistics; expired entries are purged before counting."""
        with self._lock:
            self._entries.expire()
            entry_count = len(self._entries)
            weighted_size = int(self._entries.currsize)

        return CacheStats(
            entry_count=entry_count,
            weighted_size=weighted_size,
            ttl_seconds=self.ttl_seconds,
            max_capacity=self.max_capacity,
        )
