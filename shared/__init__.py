"""
Shared utilities for the token lifecycle service.

This package aggregates common building blocks consumed by the issuer and
the verifier:

- config: Service configuration via pydantic-settings
- logging: Structured logging with correlation context
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Resilient external call protection
- base_service: In-flight tracking and graceful shutdown

Do not import from service_* packages into shared/.
"""
