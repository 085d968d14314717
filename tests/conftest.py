"""
Pytest configuration and shared fixtures for trade sync tests.

The broker REST API is replaced by an in-process httpx.MockTransport and every
test gets its own SQLite database file.
"""
import json
import pytest
import httpx
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from prometheus_client import CollectorRegistry

from core.config.settings import Settings, DatabaseSettings, BrokerSettings, SyncSettings
from core.database.connection import DatabaseManager
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from services.auth.service import AuthService
from services.auth.session_manager import SessionManager
from services.broadcast.hub import BroadcastHub
from services.broker.client import (
    ACCOUNT_SEARCH,
    AUTH_LOGIN_KEY,
    CONTRACT_SEARCH,
    ORDER_PLACE,
    TRADE_SEARCH,
    BrokerClient,
)
from services.broker.models import RawTrade
from services.trade_store.repository import TradeStore
from services.trade_sync.service import TradeSyncService

ACCOUNT_ID = 101
FIXED_NOW = datetime(2024, 5, 15, 12, 0, 0, tzinfo=timezone.utc)


def raw_trade(
    order_id: int,
    pnl: Optional[float] = 10.0,
    fees: float = 1.25,
    side: int = 1,
    creation_timestamp: str = "2024-05-02T10:00:00.000Z",
    account_id: int = ACCOUNT_ID,
    contract_id: str = "CON.F.US.MES.M24",
    price: float = 5250.25,
    size: int = 1,
) -> Dict[str, Any]:
    """A trade-search record as the broker sends it."""
    return {
        "id": order_id * 10,
        "orderId": order_id,
        "accountId": account_id,
        "contractId": contract_id,
        "creationTimestamp": creation_timestamp,
        "price": price,
        "profitAndLoss": pnl,
        "fees": fees,
        "side": side,
        "size": size,
        "voided": False,
    }


class FakeBroker:
    """Scriptable stand-in for the broker REST API."""

    def __init__(self):
        self.token = "session-token-1"
        self.accounts: List[Dict[str, Any]] = [
            {"id": 55, "name": "EXPRESS-1", "canTrade": True},
            {"id": ACCOUNT_ID, "name": "PRAC-V2-12345", "canTrade": True},
        ]
        self.trades: List[Dict[str, Any]] = []
        self.contracts: List[Dict[str, Any]] = [
            {"id": "CON.F.US.MES.M24", "name": "MESM4", "description": "Micro E-mini S&P 500",
             "tickSize": 0.25, "tickValue": 1.25, "activeContract": True},
            {"id": "CON.F.US.MES.U24", "name": "MESU4", "description": "Micro E-mini S&P 500",
             "tickSize": 0.25, "tickValue": 1.25, "activeContract": False},
        ]
        self.order_response: Dict[str, Any] = {"success": True, "orderId": 9001, "errorCode": 0}
        # endpoint -> HTTP status to return instead of the normal response
        self.http_errors: Dict[str, int] = {}
        # endpoints answering with {"success": false}
        self.rejections: set = set()
        self.requests: List[Dict[str, Any]] = []

    def calls_to(self, endpoint: str) -> List[Dict[str, Any]]:
        return [r for r in self.requests if r["path"] == endpoint]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        body = json.loads(request.content) if request.content else {}
        self.requests.append({
            "path": path,
            "body": body,
            "authorization": request.headers.get("authorization"),
        })

        if path in self.http_errors:
            return httpx.Response(self.http_errors[path], json={"message": "unavailable"})
        if path in self.rejections:
            return httpx.Response(200, json={"success": False, "errorCode": 3, "errorMessage": "rejected"})

        if path == AUTH_LOGIN_KEY:
            return httpx.Response(200, json={"success": True, "errorCode": 0, "token": self.token})
        if path == ACCOUNT_SEARCH:
            return httpx.Response(200, json={"success": True, "errorCode": 0, "accounts": self.accounts})
        if path == TRADE_SEARCH:
            return httpx.Response(200, json={"success": True, "errorCode": 0, "trades": list(self.trades)})
        if path == ORDER_PLACE:
            return httpx.Response(200, json=self.order_response)
        if path == CONTRACT_SEARCH:
            return httpx.Response(200, json={"success": True, "errorCode": 0, "contracts": self.contracts})
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def test_settings(tmp_path):
    """Test settings configuration."""
    return Settings(
        _env_file=None,
        environment="testing",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'trades.db'}"),
        broker=BrokerSettings(
            name="topstep",
            base_url="https://broker.test",
            username="trader",
            api_key="test-api-key",
            account_name="prac",
        ),
        sync=SyncSettings(
            # Long intervals: tests drive triggers explicitly
            incremental_interval_seconds=3600,
            token_refresh_interval_seconds=3600,
            clear_on_startup=True,
        ),
    )


@pytest.fixture
def make_trade():
    """Factory for broker trade-search records."""
    return raw_trade


@pytest.fixture
def make_raw(make_trade):
    """Factory for validated RawTrade models."""
    def _make(order_id: int, **overrides) -> RawTrade:
        return RawTrade.model_validate(make_trade(order_id, **overrides))
    return _make


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def fake_broker():
    return FakeBroker()


@pytest.fixture
async def broker_client(test_settings, fake_broker):
    client = BrokerClient(test_settings.broker, transport=fake_broker.transport())
    yield client
    await client.close()


@pytest.fixture
async def db_manager(test_settings):
    manager = DatabaseManager(test_settings.database.url)
    yield manager
    await manager.shutdown()


@pytest.fixture
async def trade_store(db_manager, test_settings):
    store = TradeStore(db_manager, test_settings.broker.name)
    await store.init()
    return store


@pytest.fixture
def session_manager():
    return SessionManager()


@pytest.fixture
def auth_service(test_settings, broker_client, session_manager):
    return AuthService(test_settings, broker_client, session_manager)


@pytest.fixture
def broadcast_hub():
    return BroadcastHub(subscriber_queue_size=10)


@pytest.fixture
def metrics():
    return PrometheusMetricsCollector(registry=CollectorRegistry())


@pytest.fixture
def sync_service(test_settings, broker_client, auth_service, trade_store, broadcast_hub, metrics):
    return TradeSyncService(
        settings=test_settings,
        broker_client=broker_client,
        auth_service=auth_service,
        trade_store=trade_store,
        broadcast_hub=broadcast_hub,
        metrics=metrics,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
async def ready_session(auth_service):
    """Authenticated session with the PRAC account resolved."""
    await auth_service.authenticate()
    await auth_service.resolve_account()
    return auth_service.session_manager.snapshot()
