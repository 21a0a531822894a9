"""
Read-only cache introspection for the operational stats endpoint.
"""

from typing import Any, Dict

from service_proxy.app.caching.response_cache import ResponseCache


class StatsReporter:
    """Builds the ``/_stats`` payload."""

    def __init__(self, cache: ResponseCache, ttl_seconds: int, max_capacity: int):
        self.cache = cache
        self.ttl_seconds = ttl_seconds
        self.max_capacity = max_capacity

    def report(self) -> Dict[str, Any]:
        stats = self.cache.stats()
        return {
            "entry_count": stats.entry_count,
            "weighted_size": stats.weighted_size,
            "ttl_seconds": self.ttl_seconds,
            "max_capacity": self.max_capacity,
        }
