"""
Domain layer for the Proxy Service.

Includes the origin gate and its CORS interceptor, the request pipeline
that ties the cache to the upstream adapter, and cache introspection.
"""

from .origin_gate import CorsInterceptor, OriginGate
from .pipeline import RequestPipeline
from .stats import StatsReporter

__all__ = [
    "CorsInterceptor",
    "OriginGate",
    "RequestPipeline",
    "StatsReporter",
]
