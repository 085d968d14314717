"""
HTTP and WebSocket surface, running the real orchestrator in the app lifespan.
"""
import json
import time
import pytest
from dependency_injector import providers
from fastapi.testclient import TestClient

from api.main import create_app
from app.containers import AppContainer
from services.broker.client import AUTH_LOGIN_KEY, CONTRACT_SEARCH, ORDER_PLACE, TRADE_SEARCH, BrokerClient


@pytest.fixture
def api_container(test_settings, fake_broker):
    container = AppContainer()
    container.settings.override(providers.Object(test_settings))
    container.broker_client.override(providers.Singleton(
        BrokerClient,
        settings=test_settings.broker,
        transport=fake_broker.transport(),
    ))
    yield container
    container.unwire()
    container.reset_override()


@pytest.fixture
def client(api_container):
    app = create_app(api_container)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seeded_broker(fake_broker, make_trade):
    fake_broker.trades = [
        make_trade(1, creation_timestamp="2024-05-02T10:00:00.000Z"),
        make_trade(2, creation_timestamp="2024-05-03T10:00:00.000Z"),
        make_trade(3, pnl=None),
    ]
    return fake_broker


def test_list_trades_after_startup_backfill(seeded_broker, client):
    response = client.get("/api/trades")

    assert response.status_code == 200
    trades = response.json()
    assert [t["orderId"] for t in trades] == [2, 1]
    assert trades[0]["broker"] == "topstep"
    assert trades[0]["side"] == "buy"
    assert trades[0]["fees"] == 2.5


def test_clear_trades(seeded_broker, client):
    response = client.delete("/api/trades")

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["deleted"] == 2
    assert client.get("/api/trades").json() == []


def test_manual_sync_defaults_to_month_to_date(seeded_broker, client, make_trade):
    seeded_broker.trades.append(make_trade(4, creation_timestamp="2024-05-04T10:00:00.000Z"))

    response = client.post("/api/trades/sync")

    assert response.status_code == 200
    body = response.json()
    assert body["mode"] == "manual"
    assert body["accountId"] == 101
    assert (body["inserted"], body["skipped"], body["excluded"]) == (1, 2, 1)
    assert [t["orderId"] for t in body["trades"]] == [4]
    assert body["window"]["start"].endswith("T00:00:00.000Z")


def test_manual_sync_with_explicit_window(seeded_broker, client):
    response = client.post("/api/trades/sync", json={
        "accountId": 55,
        "start": "2024-05-01T00:00:00.000Z",
        "end": "2024-05-02T00:00:00.000Z",
    })

    assert response.status_code == 200
    assert seeded_broker.calls_to(TRADE_SEARCH)[-1]["body"] == {
        "accountId": 55,
        "startTimestamp": "2024-05-01T00:00:00.000Z",
        "endTimestamp": "2024-05-02T00:00:00.000Z",
    }


def test_half_open_window_request_is_rejected(client):
    response = client.post("/api/trades/sync", json={"start": "2024-05-01T00:00:00.000Z"})
    assert response.status_code == 422


def test_sync_error_maps_to_bad_gateway(seeded_broker, client):
    seeded_broker.http_errors[TRADE_SEARCH] = 503

    response = client.post("/api/trades/sync")

    assert response.status_code == 502
    payload = response.json()
    assert payload["error"] == "SyncError"
    assert payload["details"]["status_code"] == 503
    assert "timestamp" in payload


def test_missing_credentials_are_reported_as_config_error(test_settings, fake_broker, make_trade):
    test_settings.broker.api_key = ""
    fake_broker.trades = [make_trade(1)]
    container = AppContainer()
    container.settings.override(providers.Object(test_settings))
    container.broker_client.override(providers.Singleton(
        BrokerClient, settings=test_settings.broker, transport=fake_broker.transport(),
    ))

    try:
        with TestClient(create_app(container)) as client:
            status = client.get("/api/status").json()["data"]
            assert status["state"] == "steady_state"
            assert status["has_token"] is False

            session = client.post("/api/broker/session")
            assert session.status_code == 400
            assert session.json()["error"] == "ConfigError"
            assert session.json()["details"]["config_field"] == "broker.api_key"

            assert client.post("/api/trades/sync").status_code == 400
            assert client.get("/api/trades").json() == []
    finally:
        container.unwire()

    assert fake_broker.calls_to(TRADE_SEARCH) == []


def test_create_session_with_explicit_credentials(client, fake_broker):
    fake_broker.token = "fresh-token"

    response = client.post("/api/broker/session", json={"username": "ops", "apiKey": "ops-key"})

    assert response.status_code == 200
    assert response.json()["data"]["has_token"] is True
    assert "fresh-token" not in response.text
    assert fake_broker.calls_to(AUTH_LOGIN_KEY)[-1]["body"] == {"username": "ops", "apiKey": "ops-key"}


def test_remote_auth_failure_maps_to_bad_gateway(client, fake_broker):
    fake_broker.http_errors[AUTH_LOGIN_KEY] = 401

    response = client.post("/api/broker/session")

    assert response.status_code == 502
    assert response.json()["error"] == "AuthError"


def test_resolve_account_by_prefix(client):
    response = client.post("/api/broker/account", json={"namePrefix": "express"})

    assert response.status_code == 200
    assert response.json()["data"]["account"] == {"id": 55, "name": "EXPRESS-1", "canTrade": True}
    assert client.get("/api/status").json()["data"]["account_id"] == 55


def test_resolve_account_without_match(client):
    response = client.post("/api/broker/account", json={"namePrefix": "nope"})

    assert response.status_code == 200
    assert response.json()["status"] == "not_found"


def test_place_order(client, fake_broker):
    response = client.post("/api/broker/order", json={"contractId": "CON.F.US.MES.M24", "quantity": 1, "side": 0})

    assert response.status_code == 200
    assert response.json()["data"]["orderId"] == 9001
    assert fake_broker.calls_to(ORDER_PLACE)[0]["body"]["accountId"] == 101


def test_rejected_order_maps_to_bad_gateway(client, fake_broker):
    fake_broker.rejections.add(ORDER_PLACE)

    response = client.post("/api/broker/order", json={"contractId": "CON.F.US.MES.M24", "size": 1, "side": 0})

    assert response.status_code == 502
    assert response.json()["error"] == "OrderError"


def test_status_and_request_id(seeded_broker, client):
    response = client.get("/api/status", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
    data = response.json()["data"]
    assert data["state"] == "steady_state"
    assert data["backfill_attempted"] is True
    assert data["stored_trades"] == 2
    assert response.json()["broker"] == "topstep"


def test_metrics_endpoint(seeded_broker, client):
    response = client.get("/metrics")

    assert response.status_code == 200
    assert 'trade_sync_windows_total{mode="backfill",outcome="succeeded"} 1.0' in response.text
    assert 'trade_sync_trades_total{broker="topstep",result="inserted"} 2.0' in response.text


def test_websocket_receives_new_trades(seeded_broker, client, make_trade):
    with client.websocket_connect("/ws/trades") as websocket:
        seeded_broker.trades.append(make_trade(9, creation_timestamp="2024-05-09T10:00:00.000Z", side=0))
        client.post("/api/trades/sync")

        event = websocket.receive_json()

    assert event["type"] == "new-trade"
    assert event["data"]["orderId"] == 9
    assert event["data"]["side"] == "sell"
    assert event["data"]["creationTimestamp"] == "2024-05-09T10:00:00.000Z"


def test_websocket_disconnect_unsubscribes(client, api_container):
    hub = api_container.broadcast_hub()
    with client.websocket_connect("/ws/trades"):
        assert hub.subscriber_count == 1

    client.get("/health")
    assert hub.subscriber_count == 0


def test_health_reports_database(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["database"] == "ok"


def test_contract_search_by_exact_symbol(client):
    response = client.post("/api/broker/contract", json={"symbol": "mesu4"})

    assert response.status_code == 200
    contracts = response.json()["data"]["contracts"]
    assert contracts == [{
        "id": "CON.F.US.MES.U24",
        "name": "MESU4",
        "description": "Micro E-mini S&P 500",
        "tickSize": 0.25,
        "tickValue": 1.25,
        "activeContract": False,
    }]


def test_contract_search_without_match_is_not_found(client):
    response = client.post("/api/broker/contract", json={"symbol": "NQ"})

    assert response.status_code == 404
    assert "NQ" in response.json()["detail"]


def test_contract_search_failure_maps_to_bad_gateway(client, fake_broker):
    fake_broker.rejections.add(CONTRACT_SEARCH)

    response = client.post("/api/broker/contract", json={"symbol": "MESM4"})

    assert response.status_code == 502
    assert response.json()["error"] == "ContractSearchError"


WEBHOOK_KEY = "alert-secret"


def _alert(**overrides):
    alert = {
        "key": WEBHOOK_KEY,
        "broker": "topstep",
        "contractId": "CON.F.US.MES.M24",
        "side": "buy",
        "quantity": 2,
        "price": 5250.25,
    }
    alert.update(overrides)
    return alert


def test_webhook_disabled_without_key(client, fake_broker):
    response = client.post("/api/webhooks/tradingview", json=_alert())

    assert response.status_code == 404
    assert fake_broker.calls_to(ORDER_PLACE) == []


def test_webhook_rejects_wrong_key(client, test_settings, fake_broker):
    test_settings.webhook.tradingview_key = WEBHOOK_KEY

    response = client.post("/api/webhooks/tradingview", json=_alert(key="guess"))

    assert response.status_code == 401
    assert fake_broker.calls_to(ORDER_PLACE) == []


def test_webhook_places_market_order_and_syncs(client, test_settings, fake_broker, make_trade):
    test_settings.webhook.tradingview_key = WEBHOOK_KEY
    searches_before = len(fake_broker.calls_to(TRADE_SEARCH))

    # TradingView sends JSON as text/plain
    response = client.post(
        "/api/webhooks/tradingview",
        content=json.dumps(_alert(side="SELL")),
        headers={"Content-Type": "text/plain"},
    )

    assert response.status_code == 200
    assert response.json()["data"]["orderResult"]["orderId"] == 9001
    order = fake_broker.calls_to(ORDER_PLACE)[0]["body"]
    assert order["accountId"] == 101
    assert order["contractId"] == "CON.F.US.MES.M24"
    assert (order["size"], order["side"], order["type"]) == (2, 1, 2)

    # The order-triggered sync runs in the background on the app loop
    for _ in range(100):
        if len(fake_broker.calls_to(TRADE_SEARCH)) > searches_before:
            break
        time.sleep(0.01)
    assert len(fake_broker.calls_to(TRADE_SEARCH)) > searches_before


def test_webhook_rejects_incomplete_alert(client, test_settings, fake_broker):
    test_settings.webhook.tradingview_key = WEBHOOK_KEY
    alert = _alert()
    del alert["price"]

    response = client.post("/api/webhooks/tradingview", json=alert)

    assert response.status_code == 400
    assert fake_broker.calls_to(ORDER_PLACE) == []


def test_webhook_rejects_other_brokers(client, test_settings):
    test_settings.webhook.tradingview_key = WEBHOOK_KEY

    response = client.post("/api/webhooks/tradingview", json=_alert(broker="kraken"))

    assert response.status_code == 501


def test_unhandled_error_uses_error_payload(client, api_container, monkeypatch):
    store = api_container.trade_store()

    async def exploding_count():
        raise RuntimeError("unexpected")

    monkeypatch.setattr(store, "count", exploding_count)

    response = client.get("/api/status")

    assert response.status_code == 500
    assert response.json()["error"] == "InternalServerError"
    assert response.json()["details"] == {"path": "/api/status"}
