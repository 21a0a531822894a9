"""
Proxy Service package for tracker-proxy.

The proxy fronts browser requests from an allow-listed set of origins,
forwarding cache misses to one fixed upstream API with a server-side
credential and serving repeat requests from an in-process TTL cache.

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.adapters: HTTP client for the upstream API.
- app.caching: Bounded TTL response cache.
- app.domain: Origin gate, CORS interceptor, request pipeline, stats.
- app.models: Immutable value objects and cache-key derivation.
"""
