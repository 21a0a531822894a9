"""
Proxy caching package.

Holds the in-process response cache. Entries are immutable upstream
snapshots bounded by both a TTL and an entry-count capacity.
"""

from .response_cache import ResponseCache

__all__ = ["ResponseCache"]
