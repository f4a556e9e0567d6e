"""
Shared metrics configuration for the Rule Graph service.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
from typing import Dict, Any, Optional
import threading


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # One registry per collector so several service instances can coexist
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
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

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "rulegraph":
            self._setup_rulegraph_metrics()

    def _setup_rulegraph_metrics(self):
        """Set up rule graph specific metrics."""
        self._metrics["rulegraph_evaluations_total"] = Counter(
            "rulegraph_evaluations_total",
            "Total rule graph evaluations",
            ["status"],
            registry=self.registry
        )

        self._metrics["rulegraph_matches_total"] = Counter(
            "rulegraph_matches_total",
            "Total rule groups matched across evaluations",
            registry=self.registry
        )

        self._metrics["rulegraph_evaluation_duration_seconds"] = Histogram(
            "rulegraph_evaluation_duration_seconds",
            "Rule graph evaluation duration in seconds",
            registry=self.registry
        )

        self._metrics["rulegraph_ruleset_loads_total"] = Counter(
            "rulegraph_ruleset_loads_total",
            "Total rule set replacements",
            ["status"],
            registry=self.registry
        )

        self._metrics["rulegraph_rule_groups"] = Gauge(
            "rulegraph_rule_groups",
            "Number of rule groups currently loaded",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_evaluation(self, status: str, matches: int, duration: float):
        """Record the outcome of one rule graph evaluation."""
        with self._lock:
            self._metrics["rulegraph_evaluations_total"].labels(status=status).inc()
            if matches:
                self._metrics["rulegraph_matches_total"].inc(matches)
            self._metrics["rulegraph_evaluation_duration_seconds"].observe(duration)

    def record_ruleset_load(self, status: str, rule_groups: Optional[int] = None):
        """Record a rule set replacement attempt."""
        with self._lock:
            self._metrics["rulegraph_ruleset_loads_total"].labels(status=status).inc()
            if rule_groups is not None:
                self._metrics["rulegraph_rule_groups"].set(rule_groups)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
