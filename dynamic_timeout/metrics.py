"""
Outcome Metrics
===============
Prometheus metrics recorded from OutcomeReports.

The collectors are defined once, at import time, on the default registry.
Every PrometheusReporter built without an explicit registry shares them.
"""

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, REGISTRY

from .report import OutcomeReport

DURATION_BUCKETS = [
    0.005, 0.01, 0.025, 0.05, 0.1,
    0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0,
]


def build_collectors(registry: CollectorRegistry):
    """Create the duration histogram, outcome counter and concurrency gauge on ``registry``."""
    duration = Histogram(
        name="dynamic_timeout_request_duration_seconds",
        documentation="Time spent in admitted outbound requests",
        labelnames=["target", "method", "outcome", "timeout"],
        buckets=DURATION_BUCKETS,
        registry=registry,
    )

    outcomes = Counter(
        name="dynamic_timeout_requests_total",
        documentation="Outbound requests by admission outcome",
        labelnames=["target", "outcome"],
        registry=registry,
    )

    concurrency = Gauge(
        name="dynamic_timeout_observed_concurrency",
        documentation="Concurrent requests to the target observed at the last call",
        labelnames=["target"],
        registry=registry,
    )

    return duration, outcomes, concurrency


REQUEST_DURATION, REQUESTS_TOTAL, OBSERVED_CONCURRENCY = build_collectors(REGISTRY)


class PrometheusReporter:
    """
    OutcomeReport callback that records Prometheus metrics.

    Reporters share the module-level collectors, so one can be built per
    controller. Passing ``registry`` creates a private set of collectors on
    that registry instead; each such registry takes a single reporter.

    Example:
        reporter = PrometheusReporter()
        controller = AdmissionController(tiers=tiers, backend=backend, callback=reporter)
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        if registry is None:
            self.duration = REQUEST_DURATION
            self.outcomes = REQUESTS_TOTAL
            self.concurrency = OBSERVED_CONCURRENCY
        else:
            self.duration, self.outcomes, self.concurrency = build_collectors(registry)

    def __call__(self, report: OutcomeReport) -> None:
        outcome = report.kind.value
        timeout = "none" if report.timeout is None else str(report.timeout)

        self.duration.labels(
            target=report.target,
            method=report.method,
            outcome=outcome,
            timeout=timeout,
        ).observe(report.duration)
        self.outcomes.labels(target=report.target, outcome=outcome).inc()
        self.concurrency.labels(target=report.target).set(report.request_count)
