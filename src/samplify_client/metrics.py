"""Prometheus instrumentation for the client.

Metrics live on a private registry per client so that several clients (and
tests) can coexist in one process without duplicate registration.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram


class ClientMetrics:
    """Request and token grant counters for one client instance."""

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize the metrics.

        Args:
            registry: Registry to register on. A fresh one is created when
                omitted; the global default registry is never used.
        """
        self.registry = registry if registry is not None else CollectorRegistry()
        self.requests = Counter(
            "samplify_client_requests",
            "Dispatched API requests by method and HTTP status",
            ["method", "status"],
            registry=self.registry,
        )
        self.request_duration = Histogram(
            "samplify_client_request_duration_seconds",
            "Wall time of dispatched API requests",
            ["method"],
            registry=self.registry,
        )
        self.token_grants = Counter(
            "samplify_client_token_grants",
            "Auth endpoint calls by grant type and outcome",
            ["grant", "outcome"],
            registry=self.registry,
        )

    def observe_request(self, method: str, status: str, duration: float) -> None:
        self.requests.labels(method=method, status=status).inc()
        self.request_duration.labels(method=method).observe(duration)

    def observe_grant(self, grant: str, *, success: bool) -> None:
        outcome = "success" if success else "failure"
        self.token_grants.labels(grant=grant, outcome=outcome).inc()
