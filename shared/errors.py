"""
Shared error handling for tracker-proxy.
"""

from typing import Dict, Any, Optional


class ProxyException(Exception):
    """Base exception for tracker-proxy."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigError(ProxyException):
    """Missing or invalid process configuration. Fatal at startup."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIG_ERROR", message, details)


class OriginRejectedError(ProxyException):
    """Disallowed or malformed Origin header."""

    status_code = 403

    def __init__(self, origin: Optional[str], message: str = "Origin not allowed"):
        super().__init__("ORIGIN_REJECTED", message, {"origin": origin})
        self.origin = origin


class UpstreamError(ProxyException):
    """Upstream round trip failed."""

    status_code = 502
    public_message = "Upstream request failed"

    def __init__(self, code: str, url: str, reason: str):
        super().__init__(code, self.public_message, {"url": url, "reason": reason})
        self.url = url
        self.reason = reason


class UpstreamTransportError(UpstreamError):
    """Connection failure, timeout or any other transport-level error."""

    def __init__(self, url: str, reason: str):
        super().__init__("UPSTREAM_TRANSPORT_FAILURE", url, reason)


class UpstreamBodyReadError(UpstreamError):
    """The upstream response body could not be fully buffered."""

    public_message = "Failed to read response"

    def __init__(self, url: str, reason: str):
        super().__init__("UPSTREAM_BODY_READ_FAILURE", url, reason)
