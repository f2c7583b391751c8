"""Metrics collection for campaign search.

Provides a thin convenience wrapper around ``prometheus_client`` so the
engine and the service consistently record HTTP and search metrics.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per service (can be injected for testing)
"""

from typing import Optional

from prometheus_client import Counter, Histogram, CollectorRegistry, generate_latest
import structlog

logger = structlog.get_logger("campaign_search.metrics")


class MetricsCollector:
    """Centralized metrics collection for the search engine.

    Parameters
    - service_name: Logical name used for scoping/labels if desired
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.search_requests = Counter(
            'cs_search_requests_total',
            'Total search requests by final candidate strategy',
            ['strategy'],
            registry=self.registry
        )

        self.search_duration = Histogram(
            'cs_search_duration_seconds',
            'Search duration',
            ['strategy'],
            registry=self.registry
        )

        self.lexical_backend_errors = Counter(
            'cs_lexical_backend_errors_total',
            'Lexical prefilter failures recovered as empty candidate sets',
            ['strategy'],
            registry=self.registry
        )

        self.full_scan_errors = Counter(
            'cs_full_scan_errors_total',
            'Full scan failures recovered as empty candidate sets',
            registry=self.registry
        )

        self.candidate_count = Histogram(
            'cs_search_candidates',
            'Candidates handed to the ranking engine',
            ['source'],
            buckets=(0, 1, 5, 10, 25, 50, 100, 250, 1000, 5000),
            registry=self.registry
        )

        self.result_count = Histogram(
            'cs_search_results',
            'Ranked results returned per search',
            buckets=(0, 1, 5, 10, 25, 50),
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_search(
        self,
        strategy: str,
        duration: float,
        candidates: int,
        results: int
    ) -> None:
        """Record one completed search."""
        self.search_requests.labels(strategy=strategy).inc()
        self.search_duration.labels(strategy=strategy).observe(duration)
        self.candidate_count.labels(source=strategy).observe(candidates)
        self.result_count.observe(results)

    def record_lexical_error(self, strategy: str) -> None:
        """Record a lexical prefilter failure that was degraded to zero rows."""
        self.lexical_backend_errors.labels(strategy=strategy).inc()

    def record_full_scan_error(self) -> None:
        """Record a full scan failure that was degraded to zero candidates."""
        self.full_scan_errors.inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


# Global metrics collector instance
_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create metrics collector for a service.

    Returns a process-wide singleton to avoid duplicate collectors/labels.
    """
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector(service_name)
    return _metrics_collector
