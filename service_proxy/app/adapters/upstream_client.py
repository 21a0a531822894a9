"""
Upstream API client for the proxy.
"""

import asyncio
import time
from typing import TYPE_CHECKING, Optional

import httpx

from shared.logging import get_logger
from shared.errors import UpstreamBodyReadError, UpstreamTransportError
from service_proxy.app.models import CachedResponse

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


API_KEY_HEADER = "X-Api-Key"

CONNECT_TIMEOUT_SECONDS = 10.0
REQUEST_TIMEOUT_SECONDS = 30.0
MAX_IDLE_CONNECTIONS = 32
IDLE_CONNECTION_EXPIRY_SECONDS = 90.0


def build_http_client(**kwargs) -> httpx.AsyncClient:
    """Create the pooled client shared by every upstream call."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(REQUEST_TIMEOUT_SECONDS, connect=CONNECT_TIMEOUT_SECONDS),
        limits=httpx.Limits(
            max_keepalive_connections=MAX_IDLE_CONNECTIONS,
            keepalive_expiry=IDLE_CONNECTION_EXPIRY_SECONDS,
        ),
        follow_redirects=False,
        **kwargs,
    )


class UpstreamClient:
    """Forwards requests to the fixed upstream host with the service credential."""

    def __init__(
        self,
        upstream_url: str,
        api_key: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        metrics: Optional["MetricsCollector"] = None,
        request_timeout: float = REQUEST_TIMEOUT_SECONDS,
    ):
        self.upstream_url = upstream_url
        self.request_timeout = request_timeout
        self._api_key = api_key
        self.client = client or build_http_client()
        self.metrics = metrics
        self.logger = get_logger("proxy.upstream_client")

    def build_url(self, path: str, query: Optional[str] = None) -> str:
        """Concatenate base URL, path and ``?query`` (when present) verbatim."""
        url = f"{self.upstream_url}{path}"
        if query:
            url += f"?{query}"
        return url

    async def fetch(self, path: str, query: Optional[str] = None) -> CachedResponse:
        """GET the upstream resource and buffer it fully.

        The whole round trip, headers and body together, must finish within
        ``request_timeout`` seconds.

        Raises:
            UpstreamTransportError: connection failure, timeout or other
                transport-level error before a response arrived.
            UpstreamBodyReadError: the response started but its body could
                not be read or decoded in full, or the deadline passed while
                reading it.
        """
        url = self.build_url(path, query)
        start_time = time.time()
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.request_timeout

        try:
            request = self.client.build_request("GET", url, headers={API_KEY_HEADER: self._api_key})
            response = await asyncio.wait_for(
                self.client.send(request, stream=True),
                timeout=self.request_timeout,
            )
        except asyncio.TimeoutError as exc:
            self._record("transport_error", start_time)
            self.logger.error("Upstream request timed out", path=path, url=url, timeout=self.request_timeout)
            raise UpstreamTransportError(url, "request timed out") from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._record("transport_error", start_time)
            self.logger.error("Upstream request failed", path=path, url=url, error=str(exc))
            raise UpstreamTransportError(url, str(exc) or exc.__class__.__name__) from exc

        try:
            body = await asyncio.wait_for(response.aread(), timeout=max(deadline - loop.time(), 0))
        except asyncio.TimeoutError as exc:
            self._record("body_read_error", start_time)
            self.logger.error("Upstream response body timed out", path=path, url=url, timeout=self.request_timeout)
            raise UpstreamBodyReadError(url, "response body timed out") from exc
        except httpx.HTTPError as exc:
            self._record("body_read_error", start_time)
            self.logger.error("Failed to read upstream response", path=path, url=url, error=str(exc))
            raise UpstreamBodyReadError(url, str(exc) or exc.__class__.__name__) from exc
        finally:
            await response.aclose()

        self._record(str(response.status_code), start_time)
        self.logger.debug(
            "Upstream response received",
            url=url,
            status_code=response.status_code,
            size=len(body),
        )

        return CachedResponse(
            status=response.status_code,
            body=body,
            content_type=response.headers.get("content-type"),
        )

    def _record(self, outcome: str, start_time: float) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream_request(outcome, time.time() - start_time)

    async def close(self) -> None:
        """Release pooled connections."""
        await self.client.aclose()
