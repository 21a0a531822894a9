"""
Origin validation and CORS handling for the proxy.
"""

from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from fastapi import Request, Response
from fastapi.responses import PlainTextResponse

from shared.logging import get_logger
from shared.errors import OriginRejectedError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


ALLOW_METHODS = "GET, OPTIONS"
ALLOW_HEADERS = "Content-Type"
PREFLIGHT_MAX_AGE = "86400"


class OriginGate:
    """Decides whether an ``Origin`` header value may receive CORS headers.

    Matching is byte-for-byte: no case folding and no IDN normalization, so
    ``https://ArtistGrid.cx`` does not match ``artistgrid.cx``.
    """

    def __init__(self, allowed_exact: str, allowed_suffix: str):
        self.allowed_exact = allowed_exact
        self.allowed_suffix = allowed_suffix

    @staticmethod
    def extract_host(origin: str) -> str:
        """Strip an ``http(s)://`` prefix and anything from the first ``:``."""
        for scheme in ("https://", "http://"):
            if origin.startswith(scheme):
                origin = origin[len(scheme):]
                break
        return origin.split(":", 1)[0]

    def is_allowed(self, origin: Optional[str]) -> bool:
        """True iff the origin's host equals the exact match or ends with the suffix."""
        if not origin or not _is_visible_ascii(origin):
            return False

        host = self.extract_host(origin)
        if not host:
            return False

        return host == self.allowed_exact or host.endswith(self.allowed_suffix)

    def ensure_allowed(self, origin: Optional[str]) -> str:
        """Return the origin unchanged, or raise OriginRejectedError."""
        if not self.is_allowed(origin):
            raise OriginRejectedError(origin)
        return origin


def _is_visible_ascii(value: str) -> bool:
    return all(0x20 <= ord(ch) < 0x7f for ch in value)


class CorsInterceptor:
    """Request interceptor enforcing the origin policy around any handler.

    Usable wherever an ``async (request, call_next)`` hook is accepted, e.g.
    ``app.middleware("http")(CorsInterceptor(gate))``.
    """

    def __init__(self, gate: OriginGate, metrics: Optional["MetricsCollector"] = None):
        self.gate = gate
        self.metrics = metrics
        self.logger = get_logger("proxy.cors")

    async def __call__(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        origin = request.headers.get("origin")

        if request.method == "OPTIONS":
            return self._preflight(request, origin)

        if origin is not None:
            try:
                self.gate.ensure_allowed(origin)
            except OriginRejectedError as exc:
                return self._reject(request, exc)

        response = await call_next(request)

        if origin is not None:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Methods"] = ALLOW_METHODS
            response.headers["Vary"] = "Origin"

        return response

    def _preflight(self, request: Request, origin: Optional[str]) -> Response:
        try:
            self.gate.ensure_allowed(origin)
        except OriginRejectedError as exc:
            return self._reject(request, exc)

        return Response(
            status_code=204,
            headers={
                "Access-Control-Allow-Origin": origin,
                "Access-Control-Allow-Methods": ALLOW_METHODS,
                "Access-Control-Allow-Headers": ALLOW_HEADERS,
                "Access-Control-Max-Age": PREFLIGHT_MAX_AGE,
            },
        )

    def _reject(self, request: Request, exc: OriginRejectedError) -> Response:
        self.logger.warning(
            "Blocked request from origin",
            origin=exc.origin,
            method=request.method,
            path=request.url.path,
        )
        if self.metrics is not None:
            self.metrics.record_origin_rejection(request.method)
        return PlainTextResponse(exc.message, status_code=exc.status_code)
