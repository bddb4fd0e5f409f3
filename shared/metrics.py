"""
Shared metrics configuration for the token lifecycle service.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import CollectorRegistry, Counter, Histogram, Info, generate_latest


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Each collector owns a registry so several services can live in one process
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._metrics["dependency_call_duration_seconds"] = Histogram(
            "dependency_call_duration_seconds",
            "Duration of provider and store calls in seconds",
            ["dependency"],
            registry=self.registry
        )

        self._setup_token_metrics()

    def _setup_token_metrics(self):
        """Set up token lifecycle metrics."""
        self._metrics["tokens_issued_total"] = Counter(
            "tokens_issued_total",
            "Total token containers issued",
            ["kind"],
            registry=self.registry
        )

        self._metrics["token_verifications_total"] = Counter(
            "token_verifications_total",
            "Total token verifications",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["token_revocations_total"] = Counter(
            "token_revocations_total",
            "Total revocations",
            ["kind"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_issued(self, kind: str):
        self._metrics["tokens_issued_total"].labels(kind=kind).inc()

    def record_verification(self, outcome: str):
        self._metrics["token_verifications_total"].labels(outcome=outcome).inc()

    def record_revocation(self, kind: str):
        self._metrics["token_revocations_total"].labels(kind=kind).inc()

    @contextmanager
    def time_dependency(self, dependency: str):
        """Context manager to time a provider or store call."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self._metrics["dependency_call_duration_seconds"].labels(
                dependency=dependency
            ).observe(time.perf_counter() - start_time)

    def sample(self, metric_name: str, **labels) -> float:
        """Read the current value of a counter sample, 0.0 when absent."""
        value = self.registry.get_sample_value(f"{metric_name}_total", labels)
        return value or 0.0

    def export(self) -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.registry)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
