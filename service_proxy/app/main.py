"""
Caching reverse proxy service for tracker-proxy.
"""

import sys
from typing import List, Optional

import httpx
from fastapi import Request
from fastapi.responses import JSONResponse

from shared.base_service import BaseService, Interceptor, SERVICE_VERSION
from shared.config import ProxyConfig, load_config
from shared.errors import ConfigError
from service_proxy.app.adapters.upstream_client import UpstreamClient
from service_proxy.app.caching.response_cache import ResponseCache
from service_proxy.app.domain.origin_gate import CorsInterceptor, OriginGate
from service_proxy.app.domain.pipeline import RequestPipeline
from service_proxy.app.domain.stats import StatsReporter


SERVICE_NAME = "tracker-proxy"

# OPTIONS never reaches a route: the CORS interceptor answers every preflight.
PROXIED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"]


class ProxyService(BaseService):
    """Edge caching reverse proxy in front of a single upstream API."""

    def __init__(
        self,
        config: ProxyConfig,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResponseCache] = None,
    ):
        # Components must exist before BaseService wires interceptors and routes.
        self.cache = cache if cache is not None else ResponseCache(config.cache_ttl_seconds, config.cache_max_capacity)
        self.origin_gate = OriginGate(config.allowed_origin_exact, config.allowed_origin_suffix)
        self.stats_reporter = StatsReporter(self.cache, config.cache_ttl_seconds, config.cache_max_capacity)

        super().__init__(SERVICE_NAME, config)

        self.upstream = UpstreamClient(
            config.upstream_url,
            config.api_key,
            client=http_client,
            metrics=self.metrics,
        )
        self.pipeline = RequestPipeline(
            self.cache,
            self.upstream,
            config.cache_ttl_seconds,
            metrics=self.metrics,
        )

        @self.app.on_event("startup")
        async def _startup():
            self.logger.info(
                "Starting tracker-proxy",
                version=SERVICE_VERSION,
                upstream=config.upstream_url,
                cache_ttl_seconds=config.cache_ttl_seconds,
                cache_max_capacity=config.cache_max_capacity,
            )

        @self.app.on_event("shutdown")
        async def _shutdown():
            self.logger.info("Shutting down")
            await self.upstream.close()

        # Expose service instance via app state for introspection/testing
        self.app.state.proxy_service = self

    def _interceptors(self) -> List[Interceptor]:
        return [CorsInterceptor(self.origin_gate, metrics=self.metrics)]

    def _endpoint_label(self, path: str) -> str:
        # Proxied paths are unbounded; collapse them into one label.
        return path if path.startswith("/_") else "proxy"

    def _refresh_gauges(self):
        # Entries expire without any write, so recount on every scrape.
        self.metrics.set_gauge("cache_entries", len(self.cache))

    def _setup_routes(self):
        super()._setup_routes()

        @self.app.get("/_stats")
        async def cache_stats():
            """Cache size, capacity and TTL."""
            return JSONResponse(self.stats_reporter.report())

        @self.app.api_route("/{full_path:path}", methods=PROXIED_METHODS, include_in_schema=False)
        async def proxy_all(request: Request, full_path: str):
            """Fallback route: every other path goes through the request pipeline."""
            path, query = self._raw_target(request)
            return await self.pipeline.handle(path, query)

    @staticmethod
    def _raw_target(request: Request):
        """Path and query exactly as sent by the client, without percent-decoding."""
        raw_path = request.scope.get("raw_path")
        path = raw_path.split(b"?", 1)[0].decode("latin-1") if raw_path else request.url.path
        query = request.scope.get("query_string", b"").decode("latin-1")
        return path, query or None


def create_app(config: Optional[ProxyConfig] = None, *, http_client: Optional[httpx.AsyncClient] = None):
    """Create FastAPI application."""
    service = ProxyService(config or load_config(), http_client=http_client)
    return service.app


def main() -> None:
    try:
        config = load_config()
    except ConfigError as exc:
        print(f"Configuration error: {exc.message}", file=sys.stderr)
        sys.exit(1)

    ProxyService(config).run()


if __name__ == "__main__":
    main()
