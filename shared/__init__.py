"""
Shared utilities for tracker-proxy.

This package aggregates common building blocks consumed by the service:

- config: Process configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI app skeleton, middleware and common routes

Any cross-cutting logic should live here. Do not import from
service_proxy into shared/.
"""
