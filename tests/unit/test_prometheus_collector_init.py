from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from prometheus_client import CollectorRegistry, generate_latest


def test_collector_exposes_sync_metrics():
    reg = CollectorRegistry()
    c = PrometheusMetricsCollector(registry=reg)
    c.record_window("backfill", "succeeded", 0.2)
    c.record_trades("topstep", inserted=2, skipped=1, excluded=0)
    c.record_broadcast(delivered=3, subscribers=3)
    c.record_token_refresh(False)

    out = generate_latest(reg).decode()
    assert 'trade_sync_windows_total{mode="backfill",outcome="succeeded"} 1.0' in out
    assert 'trade_sync_trades_total{broker="topstep",result="inserted"} 2.0' in out
    assert 'trade_sync_trades_total{broker="topstep",result="skipped"} 1.0' in out
    assert 'result="excluded"' not in out
    assert "trade_broadcast_deliveries_total 3.0" in out
    assert "trade_broadcast_subscribers 3.0" in out
    assert 'broker_token_refresh_total{outcome="failure"} 1.0' in out


def test_collectors_with_separate_registries_do_not_clash():
    # Registering the same metric names twice on one registry would raise
    PrometheusMetricsCollector(registry=CollectorRegistry())
    PrometheusMetricsCollector(registry=CollectorRegistry())
