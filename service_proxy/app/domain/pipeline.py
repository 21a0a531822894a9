"""
Request pipeline: cache lookup, upstream fetch and response reconstruction.
"""

import json
from typing import TYPE_CHECKING, Optional

from fastapi import Response

from shared.logging import get_logger
from shared.errors import UpstreamError
from service_proxy.app.adapters.upstream_client import UpstreamClient
from service_proxy.app.caching.response_cache import ResponseCache
from service_proxy.app.models import CachedResponse, build_cache_key

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


CACHE_STATUS_HEADER = "X-Cache"


class RequestPipeline:
    """Serves a path+query from the cache, falling back to the upstream."""

    def __init__(
        self,
        cache: ResponseCache,
        upstream: UpstreamClient,
        ttl_seconds: int,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.upstream = upstream
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.logger = get_logger("proxy.pipeline")

    async def handle(self, path: str, query: Optional[str] = None) -> Response:
        cache_key = build_cache_key(path, query)

        cached = self.cache.get(cache_key)
        self._record_lookup(hit=cached is not None)
        if cached is not None:
            self.logger.info("Cache HIT", cache_key=cache_key)
            return self.build_response(cached, from_cache=True)

        self.logger.info("Cache MISS", cache_key=cache_key)

        try:
            fetched = await self.upstream.fetch(path, query)
        except UpstreamError as exc:
            return self.error_response(exc)

        if fetched.is_cacheable:
            self.cache.insert(cache_key, fetched)
            if self.metrics is not None:
                self.metrics.set_gauge("cache_entries", len(self.cache))

        return self.build_response(fetched, from_cache=False)

    def build_response(self, cached: CachedResponse, *, from_cache: bool) -> Response:
        headers = {
            "Cache-Control": f"public, max-age={self.ttl_seconds}",
            CACHE_STATUS_HEADER: "HIT" if from_cache else "MISS",
        }
        if cached.content_type is not None:
            headers["Content-Type"] = cached.content_type

        return Response(content=cached.body, status_code=cached.status, headers=headers)

    @staticmethod
    def error_response(exc: UpstreamError) -> Response:
        return Response(
            content=json.dumps({"error": exc.public_message}),
            status_code=exc.status_code,
            media_type="application/json",
        )

    def _record_lookup(self, hit: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_cache_lookup(hit)
