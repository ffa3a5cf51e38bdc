"""
Tests for outcome reports and Prometheus metrics.
"""

import asyncio

import httpx
import pytest
from prometheus_client import REGISTRY, CollectorRegistry

from dynamic_timeout.exceptions import AdmissionRefusedError
from dynamic_timeout.metrics import PrometheusReporter
from dynamic_timeout.report import OutcomeKind, OutcomeReport


def make_report(**kwargs):
    kwargs.setdefault("target", "https://example.com")
    kwargs.setdefault("method", "GET")
    kwargs.setdefault("url", "https://example.com/foobar")
    kwargs.setdefault("duration", 0.12)
    return OutcomeReport(**kwargs)


class TestOutcomeReport:
    """Tests for derived report fields."""

    def test_success(self):
        report = make_report(timeout=0.3, status=200, observed_count=3)
        assert report.kind == OutcomeKind.SUCCESS
        assert not report.is_error
        assert report.request_count == 3

    def test_throttled_uses_refusal_estimate(self):
        error = AdmissionRefusedError("refused", request_count=7)
        report = make_report(error=error, observed_count=2)

        assert report.is_throttled
        assert report.is_error
        assert not report.is_timed_out
        assert report.request_count == 7
        assert report.kind == OutcomeKind.THROTTLED

    @pytest.mark.parametrize("error", [httpx.ConnectTimeout("slow"), asyncio.TimeoutError()])
    def test_timed_out(self, error):
        report = make_report(error=error)
        assert report.is_timed_out
        assert report.kind == OutcomeKind.TIMED_OUT

    def test_other_error(self):
        report = make_report(error=httpx.ConnectError("refused"))
        assert report.kind == OutcomeKind.ERROR
        assert not report.is_throttled

    def test_immutable(self):
        report = make_report()
        with pytest.raises(AttributeError):
            report.timeout = 1.0


class TestPrometheusReporter:
    """Tests for metrics recorded from reports."""

    def test_records_outcomes(self):
        registry = CollectorRegistry()
        reporter = PrometheusReporter(registry=registry)

        reporter(make_report(timeout=0.3, observed_count=4))
        reporter(make_report(error=AdmissionRefusedError("refused", request_count=9)))

        target = "https://example.com"
        assert registry.get_sample_value(
            "dynamic_timeout_requests_total", {"target": target, "outcome": "success"}
        ) == 1.0
        assert registry.get_sample_value(
            "dynamic_timeout_requests_total", {"target": target, "outcome": "throttled"}
        ) == 1.0
        assert registry.get_sample_value(
            "dynamic_timeout_request_duration_seconds_count",
            {"target": target, "method": "GET", "outcome": "success", "timeout": "0.3"},
        ) == 1.0
        assert registry.get_sample_value(
            "dynamic_timeout_observed_concurrency", {"target": target}
        ) == 9.0

    def test_default_reporters_share_collectors(self):
        target = "https://shared.example.com"
        first = PrometheusReporter()
        second = PrometheusReporter()

        first(make_report(target=target, timeout=0.3))
        second(make_report(target=target, timeout=0.3))

        assert first.outcomes is second.outcomes
        assert REGISTRY.get_sample_value(
            "dynamic_timeout_requests_total", {"target": target, "outcome": "success"}
        ) == 2.0
