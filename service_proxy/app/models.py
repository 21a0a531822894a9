"""
Value objects shared by the proxy pipeline.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel


@dataclass(frozen=True)
class CachedResponse:
    """Immutable snapshot of an upstream reply."""

    status: int
    body: bytes = b""
    content_type: Optional[str] = None

    @property
    def is_cacheable(self) -> bool:
        """Only 2xx replies may be stored."""
        return 200 <= self.status < 300


class CacheStats(BaseModel):
    """Point-in-time view of the response cache."""

    entry_count: int
    weighted_size: int
    ttl_seconds: int
    max_capacity: int


def build_cache_key(path: str, query: Optional[str] = None) -> str:
    """Derive the cache key: the path, plus ``?query`` when a query is present.

    The HTTP method is not part of the key.
    """
    if query:
        return f"{path}?{query}"
    return path
