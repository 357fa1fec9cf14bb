"""
Shared utilities for the Homi journal gateway.

This package aggregates common building blocks consumed by the services:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI app scaffolding (CORS, timing, error mapping)

Do not import from service packages into shared/.
"""
