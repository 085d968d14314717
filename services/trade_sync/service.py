import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from core.config.settings import Settings
from core.logging import get_logger, bind_broker_context
from core.monitoring import PrometheusMetricsCollector
from core.utils.exceptions import ConfigError, ContractSearchError, OrderError, PersistError, SyncError
from services.auth import AuthService
from services.broadcast import BroadcastHub
from services.broker import BrokerClient, BrokerContract, BrokerRequestError, OrderRequest
from services.trade_store import TradeRecord, TradeStore
from .windows import SyncWindow, month_to_date_window, trailing_window

logger = get_logger(__name__, component="trade_sync")


class SyncMode(str, Enum):
    BACKFILL = "backfill"
    INCREMENTAL = "incremental"
    ORDER = "order"
    MANUAL = "manual"


@dataclass
class SyncResult:
    mode: SyncMode
    account_id: int
    window: SyncWindow
    received: int = 0
    inserted: int = 0
    skipped: int = 0
    excluded: int = 0
    inserted_trades: List[TradeRecord] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "accountId": self.account_id,
            "window": self.window.to_dict(),
            "received": self.received,
            "inserted": self.inserted,
            "skipped": self.skipped,
            "excluded": self.excluded,
        }


class TradeSyncService:
    """Fetches trade windows from the broker, persists them and fans out new rows.

    Every window sync is independent: concurrent or repeated calls for
    overlapping windows are safe because the trade store deduplicates on its
    primary key. New trades are published only after their batch committed.
    """

    def __init__(
        self,
        settings: Settings,
        broker_client: BrokerClient,
        auth_service: AuthService,
        trade_store: TradeStore,
        broadcast_hub: BroadcastHub,
        metrics: PrometheusMetricsCollector,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.broker_client = broker_client
        self.auth_service = auth_service
        self.trade_store = trade_store
        self.broadcast_hub = broadcast_hub
        self.metrics = metrics
        self._now = clock or (lambda: datetime.now(timezone.utc))

    async def sync_window(self, account_id: int, start_timestamp: str, end_timestamp: str,
                          mode: SyncMode = SyncMode.MANUAL) -> SyncResult:
        """Fetch [start, end) for the account and persist every realized trade.

        Raises SyncError when the fetch fails (nothing is written in that case)
        and PersistError when the batch transaction fails (rolled back).
        """
        window = SyncWindow(start_timestamp, end_timestamp)
        log = bind_broker_context(logger, self.trade_store.broker_name, account_id).bind(
            mode=mode.value, window_start=window.start, window_end=window.end
        )
        started = time.monotonic()

        try:
            token = self.auth_service.require_token()
        except ConfigError as e:
            self.metrics.record_window(mode.value, "failed", time.monotonic() - started)
            log.error("Window sync skipped: no session token")
            raise SyncError("Cannot sync trades without a session token",
                            window=window.to_dict(), details={"reason": "missing_token"}) from e

        try:
            raw_trades = await self.broker_client.search_trades(token, account_id, window.start, window.end)
        except BrokerRequestError as e:
            self.metrics.record_window(mode.value, "failed", time.monotonic() - started)
            log.error("Trade search failed", error=str(e), **e.to_details())
            raise SyncError("Trade search failed", window=window.to_dict(), details=e.to_details()) from e

        try:
            batch = await self.trade_store.persist_batch(raw_trades)
        except PersistError:
            self.metrics.record_window(mode.value, "failed", time.monotonic() - started)
            log.error("Window sync failed while persisting", received=len(raw_trades))
            raise

        self._broadcast(batch.inserted)

        result = SyncResult(
            mode=mode,
            account_id=account_id,
            window=window,
            received=len(raw_trades),
            inserted=batch.inserted_count,
            skipped=batch.skipped,
            excluded=batch.excluded,
            inserted_trades=batch.inserted,
        )
        self.metrics.record_window(mode.value, "succeeded", time.monotonic() - started)
        self.metrics.record_trades(self.trade_store.broker_name, result.inserted, result.skipped, result.excluded)
        log.info("Window sync completed", received=result.received, inserted=result.inserted,
                 skipped=result.skipped, excluded=result.excluded)
        return result

    def _broadcast(self, records: List[TradeRecord]) -> None:
        # Broadcast is best-effort: failures here never undo or fail the sync
        for record in records:
            try:
                delivered = self.broadcast_hub.publish(record.to_payload())
                self.metrics.record_broadcast(delivered, self.broadcast_hub.subscriber_count)
            except Exception as e:
                logger.error("Broadcast of new trade failed", error=str(e),
                             order_id=record.order_id, creation_timestamp=record.creation_timestamp)

    async def backfill(self) -> SyncResult:
        """Month-to-date sync performed once at startup."""
        account_id = self.auth_service.require_account_id()
        window = month_to_date_window(self._now())
        return await self.sync_window(account_id, window.start, window.end, mode=SyncMode.BACKFILL)

    async def sync_incremental(self, mode: SyncMode = SyncMode.INCREMENTAL) -> SyncResult:
        """Sync the trailing lookback window (one minute by default)."""
        account_id = self.auth_service.require_account_id()
        window = trailing_window(self._now(), self.settings.sync.incremental_lookback_seconds)
        return await self.sync_window(account_id, window.start, window.end, mode=mode)

    async def sync_month_to_date(self, account_id: Optional[int] = None) -> SyncResult:
        """Administrative re-sync of the current month for any account."""
        if account_id is None:
            account_id = self.auth_service.require_account_id()
        window = month_to_date_window(self._now())
        return await self.sync_window(account_id, window.start, window.end, mode=SyncMode.MANUAL)

    async def place_order(self, order: OrderRequest) -> Dict[str, Any]:
        """Forward an order to the broker on the resolved account."""
        token = self.auth_service.require_token()
        account_id = self.auth_service.require_account_id()
        try:
            return await self.broker_client.place_order(token, account_id, order)
        except BrokerRequestError as e:
            logger.error("Order placement failed", error=str(e), contract_id=order.contract_id,
                         **e.to_details())
            raise OrderError("Order placement failed", details=e.to_details()) from e

    async def find_contracts(self, symbol: str) -> List[BrokerContract]:
        """Contracts whose name equals the symbol (case-insensitive)."""
        if not symbol.strip():
            raise ConfigError("A contract symbol is required", config_field="symbol")
        token = self.auth_service.require_token()
        try:
            candidates = await self.broker_client.search_contracts(token, symbol)
        except BrokerRequestError as e:
            logger.error("Contract search failed", symbol=symbol, **e.to_details())
            raise ContractSearchError("Contract search failed", details=e.to_details()) from e
        matches = [contract for contract in candidates if contract.matches_symbol(symbol)]
        logger.info("Contract search completed", symbol=symbol, candidates=len(candidates),
                    matches=len(matches))
        return matches
