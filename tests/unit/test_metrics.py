"""Tests for capweight.monitoring metrics."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from capweight.monitoring.metrics import MetricsCollector


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_record_run(self) -> None:
        """Run counter is labelled by outcome and duration is observed."""
        registry = CollectorRegistry()
        mc = MetricsCollector(registry=registry)

        mc.record_run("NONE", 1.5)
        mc.record_run("NONE", 2.0)
        mc.record_run("AUTHENTICATION_ERROR", 0.2)

        assert mc.rebalance_runs.labels(outcome="NONE")._value.get() == 2.0
        assert mc.rebalance_runs.labels(outcome="AUTHENTICATION_ERROR")._value.get() == 1.0
        assert registry.get_sample_value("capweight_rebalance_duration_seconds_count") == 3.0
        assert registry.get_sample_value(
            "capweight_rebalance_duration_seconds_sum"
        ) == pytest.approx(3.7)

    def test_record_order(self) -> None:
        """Submitted and failed orders go to separate counters."""
        mc = MetricsCollector(registry=CollectorRegistry())

        mc.record_order("BUY", submitted=True)
        mc.record_order("SELL", submitted=True)
        mc.record_order("SELL", submitted=False)

        assert mc.orders_submitted.labels(side="BUY")._value.get() == 1.0
        assert mc.orders_submitted.labels(side="SELL")._value.get() == 1.0
        assert mc.orders_failed.labels(side="SELL")._value.get() == 1.0

    def test_record_cancel(self) -> None:
        mc = MetricsCollector(registry=CollectorRegistry())

        mc.record_cancel("SELL")

        assert mc.orders_cancelled.labels(side="SELL")._value.get() == 1.0

    def test_portfolio_value_gauge(self) -> None:
        """Portfolio gauge keeps the latest value."""
        mc = MetricsCollector(registry=CollectorRegistry())

        mc.update_portfolio_value(1100.0)
        mc.update_portfolio_value(1098.5)

        assert mc.portfolio_value._value.get() == 1098.5

    def test_separate_registries(self) -> None:
        """Two collectors with separate registries do not interfere."""
        mc1 = MetricsCollector(registry=CollectorRegistry())
        mc2 = MetricsCollector(registry=CollectorRegistry())

        mc1.record_cancel("SELL")

        assert mc1.orders_cancelled.labels(side="SELL")._value.get() == 1.0
        assert mc2.orders_cancelled.labels(side="SELL")._value.get() == 0.0

    def test_default_registry_is_private(self) -> None:
        mc = MetricsCollector()
        assert isinstance(mc.registry, CollectorRegistry)

