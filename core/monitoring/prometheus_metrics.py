"""
Prometheus metrics for trade ingestion
"""

from prometheus_client import Counter, Gauge, Histogram, CollectorRegistry
from typing import Optional


class PrometheusMetricsCollector:
    """Counters and timings for sync windows, ingested trades and broadcasts"""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()

        self.sync_windows = Counter(
            'trade_sync_windows_total',
            'Window syncs by mode and outcome',
            ['mode', 'outcome'],
            registry=self.registry
        )

        self.sync_duration = Histogram(
            'trade_sync_window_duration_seconds',
            'Wall time of one window sync (fetch + persist)',
            ['mode'],
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=self.registry
        )

        self.trades_ingested = Counter(
            'trade_sync_trades_total',
            'Trades seen by the persist step, by result',
            ['broker', 'result'],  # result: inserted | skipped | excluded
            registry=self.registry
        )

        self.broadcast_deliveries = Counter(
            'trade_broadcast_deliveries_total',
            'New-trade events accepted by subscriber mailboxes',
            registry=self.registry
        )

        self.token_refreshes = Counter(
            'broker_token_refresh_total',
            'Session token refresh attempts by outcome',
            ['outcome'],
            registry=self.registry
        )

        self.subscribers = Gauge(
            'trade_broadcast_subscribers',
            'Currently connected live subscribers',
            registry=self.registry
        )

    def record_window(self, mode: str, outcome: str, duration_seconds: float) -> None:
        self.sync_windows.labels(mode=mode, outcome=outcome).inc()
        self.sync_duration.labels(mode=mode).observe(duration_seconds)

    def record_trades(self, broker: str, inserted: int, skipped: int, excluded: int) -> None:
        if inserted:
            self.trades_ingested.labels(broker=broker, result="inserted").inc(inserted)
        if skipped:
            self.trades_ingested.labels(broker=broker, result="skipped").inc(skipped)
        if excluded:
            self.trades_ingested.labels(broker=broker, result="excluded").inc(excluded)

    def record_broadcast(self, delivered: int, subscribers: int) -> None:
        if delivered:
            self.broadcast_deliveries.inc(delivered)
        self.subscribers.set(subscribers)

    def record_token_refresh(self, success: bool) -> None:
        self.token_refreshes.labels(outcome="success" if success else "failure").inc()
