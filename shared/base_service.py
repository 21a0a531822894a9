"""
Base service class for tracker-proxy services.
"""

from fastapi import FastAPI, Request, Response
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from typing import Awaitable, Callable, List
import time

from shared.config import ProxyConfig
from shared.logging import configure_logging, get_logger, set_request_id, clear_context
from shared.metrics import get_metrics_collector


Interceptor = Callable[[Request, Callable[[Request], Awaitable[Response]]], Awaitable[Response]]

SERVICE_VERSION = "1.0.0"


class BaseService:
    """Base service class with common functionality."""

    def __init__(self, service_name: str, config: ProxyConfig):
        self.service_name = service_name
        self.config = config
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name)

        # Configure logging
        configure_logging(service_name, self.config.log_level)

        # Create FastAPI app
        self.app = self._create_app()

        # Set up middleware
        self._setup_middleware()

        # Set up routes
        self._setup_routes()

    def _create_app(self) -> FastAPI:
        """Create FastAPI application."""
        return FastAPI(
            title=f"{self.service_name.title()} Service",
            version=SERVICE_VERSION,
            docs_url=None,
            redoc_url=None,
            openapi_url=None,
        )

    def _interceptors(self) -> List[Interceptor]:
        """Request interceptors wrapped closest to the routes. Override in subclasses."""
        return []

    def _setup_middleware(self):
        """Set up middleware.

        Starlette wraps the most recently added middleware outermost, so the
        order below is: timing (outer), gzip, then service interceptors.
        """
        for interceptor in self._interceptors():
            self.app.middleware("http")(interceptor)

        self.app.add_middleware(GZipMiddleware, minimum_size=1000)

        # Request timing middleware
        @self.app.middleware("http")
        async def add_request_timing(request: Request, call_next):
            request_id = set_request_id(request.headers.get("X-Request-ID"))
            start_time = time.time()

            try:
                # Process request
                response = await call_next(request)

                # Calculate duration
                duration = time.time() - start_time

                # Record metrics
                self.metrics.record_http_request(
                    method=request.method,
                    endpoint=self._endpoint_label(request.url.path),
                    status_code=response.status_code,
                    duration=duration
                )

                # Log request
                self.logger.info(
                    "HTTP request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round(duration * 1000, 2)
                )

                response.headers["X-Request-ID"] = request_id
                return response
            finally:
                clear_context()

    def _endpoint_label(self, path: str) -> str:
        """Metric label for a request path. Override to bound label cardinality."""
        return path

    def _refresh_gauges(self):
        """Bring point-in-time gauges up to date before a scrape. Override in subclasses."""

    def _setup_routes(self):
        """Set up common routes."""

        @self.app.get("/_health")
        async def health_check():
            """Liveness probe."""
            return PlainTextResponse("OK")

        @self.app.get("/_metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            self._refresh_gauges()
            return Response(
                content=self.metrics.export(),
                media_type=self.metrics.content_type
            )

        # Error handlers
        @self.app.exception_handler(Exception)
        async def general_exception_handler(request: Request, exc: Exception):
            """Handle general exceptions."""
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error",
                    "details": {}
                }
            )

    def run(self):
        """Run the service."""
        import uvicorn
        self.logger.info("Listening", address=f"http://{self.config.host}:{self.config.port}")
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level
        )
