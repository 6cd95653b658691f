"""Prometheus metrics for rebalance runs."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram


class MetricsCollector:
    """Prometheus metrics registry for the rebalance engine.

    Uses a custom CollectorRegistry to avoid global state conflicts,
    making it safe for use in tests and multiple instances.

    Attributes:
        registry: The Prometheus CollectorRegistry used for all metrics.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize all Prometheus metrics.

        Args:
            registry: Custom registry. Creates a new one if not provided.
        """
        self._registry = registry or CollectorRegistry()

        # --- Counters ---
        self.rebalance_runs = Counter(
            "capweight_rebalance_runs_total",
            "Total rebalance runs by outcome",
            ["outcome"],
            registry=self._registry,
        )
        self.orders_submitted = Counter(
            "capweight_orders_submitted_total",
            "Total orders accepted by the exchange",
            ["side"],
            registry=self._registry,
        )
        self.orders_failed = Counter(
            "capweight_orders_failed_total",
            "Total orders rejected or failed on submission",
            ["side"],
            registry=self._registry,
        )
        self.orders_cancelled = Counter(
            "capweight_orders_cancelled_total",
            "Total orders cancelled after the poll budget ran out",
            ["side"],
            registry=self._registry,
        )

        # --- Gauges ---
        self.portfolio_value = Gauge(
            "capweight_portfolio_value_quote",
            "Total portfolio value in quote currency at the start of the last run",
            registry=self._registry,
        )

        # --- Histograms ---
        self.rebalance_duration = Histogram(
            "capweight_rebalance_duration_seconds",
            "Rebalance run duration",
            buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 30.0, 60.0, 120.0, 300.0],
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the collector registry."""
        return self._registry

    def record_run(self, outcome: str, duration_s: float) -> None:
        """Record a finished rebalance run.

        Args:
            outcome: Run outcome, an ``ExchangeErrorCode`` value ("NONE" on success).
            duration_s: Wall-clock duration of the run in seconds.
        """
        self.rebalance_runs.labels(outcome=outcome).inc()
        self.rebalance_duration.observe(duration_s)

    def record_order(self, side: str, submitted: bool) -> None:
        """Record an order submission attempt.

        Args:
            side: "BUY" or "SELL".
            submitted: Whether the exchange accepted the order.
        """
        if submitted:
            self.orders_submitted.labels(side=side).inc()
        else:
            self.orders_failed.labels(side=side).inc()

    def record_cancel(self, side: str) -> None:
        """Increment the timeout cancellation counter."""
        self.orders_cancelled.labels(side=side).inc()

    def update_portfolio_value(self, value: float) -> None:
        self.portfolio_value.set(value)
