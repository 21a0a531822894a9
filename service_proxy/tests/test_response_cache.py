"""
Unit tests for the proxy response cache.
"""

import threading

import pytest

from service_proxy.app.caching.response_cache import ResponseCache
from service_proxy.app.models import CachedResponse


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class TestResponseCache:
    """Test cases for ResponseCache."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def cache(self, clock):
        """Create ResponseCache instance with a controllable clock."""
        return ResponseCache(ttl_seconds=60, max_capacity=3, timer=clock)

    def test_get_missing_key(self, cache):
        assert cache.get("/nothing") is None

    def test_insert_then_get(self, cache):
        """Inserted entries are returned unchanged."""
        entry = CachedResponse(status=200, body=b'{"ok":true}', content_type="application/json")
        cache.insert("/foo?a=1", entry)

        assert cache.get("/foo?a=1") is entry
        assert "/foo?a=1" in cache

    def test_last_insert_wins(self, cache):
        """Re-inserting a key replaces the previous value."""
        cache.insert("/foo", CachedResponse(status=200, body=b"first"))
        cache.insert("/foo", CachedResponse(status=200, body=b"second"))

        assert cache.get("/foo").body == b"second"
        assert len(cache) == 1

    def test_entry_expires_at_ttl(self, cache, clock):
        """An entry is never returned at or after insert time + TTL."""
        cache.insert("/foo", CachedResponse(status=200, body=b"x"))

        clock.advance(59.9)
        assert cache.get("/foo") is not None

        clock.advance(0.1)
        assert cache.get("/foo") is None

        clock.advance(3600)
        assert cache.get("/foo") is None

    def test_reinsert_restarts_ttl(self, cache, clock):
        cache.insert("/foo", CachedResponse(status=200, body=b"old"))
        clock.advance(50)
        cache.insert("/foo", CachedResponse(status=200, body=b"new"))
        clock.advance(50)

        assert cache.get("/foo").body == b"new"

    def test_capacity_is_never_exceeded(self, cache):
        """Inserting beyond capacity evicts entries."""
        for i in range(10):
            cache.insert(f"/item/{i}", CachedResponse(status=200, body=str(i).encode()))
            assert cache.stats().entry_count <= 3

        assert cache.get("/item/9") is not None

    def test_eviction_prefers_least_recently_used(self, cache):
        """When full, the least recently used live entry is evicted."""
        cache.insert("/a", CachedResponse(status=200))
        cache.insert("/b", CachedResponse(status=200))
        cache.insert("/c", CachedResponse(status=200))

        # Touch /a so /b becomes the LRU entry
        assert cache.get("/a") is not None
        cache.insert("/d", CachedResponse(status=200))

        assert cache.get("/b") is None
        assert cache.get("/a") is not None
        assert cache.get("/c") is not None
        assert cache.get("/d") is not None

    def test_eviction_drops_expired_entries_first(self, cache, clock):
        cache.insert("/old", CachedResponse(status=200))
        clock.advance(30)
        cache.insert("/b", CachedResponse(status=200))
        cache.insert("/c", CachedResponse(status=200))
        clock.advance(31)

        cache.insert("/d", CachedResponse(status=200))

        assert cache.get("/b") is not None
        assert cache.get("/c") is not None
        assert cache.get("/d") is not None

    def test_stats(self, cache, clock):
        """Stats purge expired entries before counting."""
        cache.insert("/a", CachedResponse(status=200))
        clock.advance(30)
        cache.insert("/b", CachedResponse(status=200))

        stats = cache.stats()
        assert stats.entry_count == 2
        assert stats.weighted_size == 2
        assert stats.ttl_seconds == 60
        assert stats.max_capacity == 3

        clock.advance(31)
        stats = cache.stats()
        assert stats.entry_count == 1
        assert stats.weighted_size == 1

    @pytest.mark.parametrize("ttl,capacity", [(0, 10), (10, 0), (-1, 10)])
    def test_rejects_non_positive_bounds(self, ttl, capacity):
        with pytest.raises(ValueError):
            ResponseCache(ttl_seconds=ttl, max_capacity=capacity)

    def test_concurrent_writers_respect_capacity(self):
        """Concurrent inserts from many threads keep the store consistent."""
        cache = ResponseCache(ttl_seconds=60, max_capacity=50)
        mismatches = []

        def writer(worker: int):
            for i in range(200):
                key = f"/w{worker}/{i % 80}"
                cache.insert(key, CachedResponse(status=200, body=key.encode()))
                value = cache.get(key)
                if value is not None and value.body != key.encode():
                    mismatches.append(key)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert mismatches == []
        assert cache.stats().entry_count <= 50
