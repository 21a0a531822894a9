"""
Adapters package for the Proxy Service.

Contains the HTTP client wrapper for the single fixed upstream API. The
adapter owns the base URL, the service credential and the transport
timeouts, and maps transport failures onto shared errors. It never
retries and never touches the cache.
"""

from .upstream_client import UpstreamClient

__all__ = [
    "UpstreamClient",
]
