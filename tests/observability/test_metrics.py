"""Tests for the Prometheus metrics registry."""

import pytest
from prometheus_client import CollectorRegistry

from repoflow.observability.metrics import MetricsRegistry


class TestMetricsRegistry:
    def test_counter_is_registered_once(self):
        metrics = MetricsRegistry(CollectorRegistry())
        first = metrics.counter("repoflow_test_total", "Test counter", labels=["kind"])
        second = metrics.counter("repoflow_test_total", "Test counter", labels=["kind"])
        assert first is second

    def test_sample_reads_counter(self):
        metrics = MetricsRegistry(CollectorRegistry())
        metrics.counter("repoflow_hits_total", "Hits", labels=["kind"]).labels(kind="a").inc(2)
        assert metrics.sample("repoflow_hits_total", {"kind": "a"}) == 2
        assert metrics.sample("repoflow_hits_total", {"kind": "b"}) is None

    def test_histogram_with_buckets(self):
        metrics = MetricsRegistry(CollectorRegistry())
        histogram = metrics.histogram("repoflow_latency_seconds", "Latency", buckets=(0.1, 1.0))
        histogram.observe(0.5)
        assert metrics.sample("repoflow_latency_seconds_count") == 1
        assert metrics.sample("repoflow_latency_seconds_bucket", {"le": "1.0"}) == 1

    def test_gauge(self):
        metrics = MetricsRegistry(CollectorRegistry())
        metrics.gauge("repoflow_pending", "Pending").set(4)
        assert metrics.sample("repoflow_pending") == 4

    def test_private_registries_are_isolated(self):
        a = MetricsRegistry(CollectorRegistry())
        b = MetricsRegistry(CollectorRegistry())
        a.counter("repoflow_iso_total", "x").inc()
        b.counter("repoflow_iso_total", "x")
        assert a.sample("repoflow_iso_total") == 1
        assert b.sample("repoflow_iso_total") == 0

    def test_name_reused_for_other_kind_is_rejected(self):
        metrics = MetricsRegistry(CollectorRegistry())
        metrics.counter("repoflow_clash_total", "x")
        with pytest.raises(ValueError, match="already registered as a Counter"):
            metrics.gauge("repoflow_clash_total", "x")
