import asyncio
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.logging import get_logger
from core.monitoring import PrometheusMetricsCollector
from core.utils.exceptions import TradeSyncException
from services.auth import AuthService
from services.broadcast import BroadcastHub
from services.broker import BrokerClient, OrderRequest
from services.trade_store import TradeStore
from services.trade_sync import SyncMode, SyncResult, TradeSyncService

logger = get_logger(__name__, component="orchestrator")


class OrchestratorState(str, Enum):
    IDLE = "idle"
    TOKEN_ACQUIRED = "token_acquired"
    ACCOUNT_RESOLVED = "account_resolved"
    BACKFILL_DONE = "backfill_done"
    STEADY_STATE = "steady_state"
    STOPPED = "stopped"


class SyncOrchestrator:
    """Startup sequence and recurring triggers for trade synchronization.

    Startup walks Idle -> TokenAcquired -> AccountResolved -> BackfillDone ->
    SteadyState. A failing step is logged and the sequence moves on, so the
    process always ends up live; syncs that need a missing token or account
    fail individually and the next trigger tries again.
    """

    def __init__(
        self,
        settings: Settings,
        db_manager: DatabaseManager,
        broker_client: BrokerClient,
        auth_service: AuthService,
        trade_store: TradeStore,
        broadcast_hub: BroadcastHub,
        sync_service: TradeSyncService,
        metrics: PrometheusMetricsCollector,
    ):
        self.settings = settings
        self.db_manager = db_manager
        self.broker_client = broker_client
        self.auth_service = auth_service
        self.trade_store = trade_store
        self.broadcast_hub = broadcast_hub
        self.sync_service = sync_service
        self.metrics = metrics

        self.state = OrchestratorState.IDLE
        self.store_ready = False
        self.backfill_attempted = False
        self.last_backfill: Optional[SyncResult] = None
        self._timers: Set[asyncio.Task] = set()
        self._in_flight: Set[asyncio.Task] = set()

    async def startup(self) -> None:
        """Run the startup sequence and arm the recurring timers."""
        if self.state is not OrchestratorState.IDLE:
            logger.warning("Startup requested twice; ignoring", state=self.state.value)
            return

        self.store_ready, _ = await self._attempt("prepare_store", self._prepare_store())

        authenticated, _ = await self._attempt("authenticate", self.auth_service.authenticate())
        self.metrics.record_token_refresh(authenticated)
        self.state = OrchestratorState.TOKEN_ACQUIRED

        _, account = await self._attempt("resolve_account", self.auth_service.resolve_account())
        if account is not None:
            logger.info("Trading account resolved", account_id=account.id, account_name=account.name)
        self.state = OrchestratorState.ACCOUNT_RESOLVED

        _, self.last_backfill = await self._attempt("backfill", self.sync_service.backfill())
        self.backfill_attempted = True
        self.state = OrchestratorState.BACKFILL_DONE

        self._arm_timers()
        self.state = OrchestratorState.STEADY_STATE
        logger.info("Trade sync orchestrator is live", **self.status())

    async def _prepare_store(self) -> None:
        await self.db_manager.wait_for_ready(timeout=self.settings.database.ready_timeout_seconds)
        await self.trade_store.init()
        if self.settings.sync.clear_on_startup:
            await self.trade_store.clear_all()

    async def _attempt(self, step: str, coro: Awaitable[Any]) -> Tuple[bool, Any]:
        """Run one startup step; a failure is logged and never ends startup."""
        try:
            return True, await coro
        except TradeSyncException as e:
            logger.error("Startup step failed; continuing", step=step, error=e.message,
                         error_type=type(e).__name__, details=e.details)
        except Exception as e:
            logger.error("Startup step crashed; continuing", step=step, error=str(e),
                         error_type=type(e).__name__, exc_info=True)
        return False, None

    def _arm_timers(self) -> None:
        sync = self.settings.sync
        self._timers.add(asyncio.create_task(
            self._every(sync.token_refresh_interval_seconds, self._refresh_token, "token_refresh"),
            name="timer:token_refresh",
        ))
        self._timers.add(asyncio.create_task(
            self._every(sync.incremental_interval_seconds, self._incremental_sync, "incremental_sync"),
            name="timer:incremental_sync",
        ))

    async def _every(self, interval: float, job: Callable[[], Awaitable[Any]], name: str) -> None:
        # Each tick runs as its own task so a slow job never delays the next tick
        while True:
            await asyncio.sleep(interval)
            self._spawn(job(), name)

    def _spawn(self, coro: Awaitable[Any], name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._in_flight.add(task)
        task.add_done_callback(lambda t: self._on_task_done(t, name))
        return task

    def _on_task_done(self, task: asyncio.Task, name: str) -> None:
        self._in_flight.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Background trigger crashed", trigger=name, error=str(error),
                         error_type=type(error).__name__)

    async def _refresh_token(self) -> bool:
        refreshed = await self.auth_service.refresh_on_schedule()
        self.metrics.record_token_refresh(refreshed)
        return refreshed

    async def _incremental_sync(self, mode: SyncMode = SyncMode.INCREMENTAL) -> Optional[SyncResult]:
        try:
            return await self.sync_service.sync_incremental(mode=mode)
        except TradeSyncException as e:
            logger.warning("Incremental sync failed; next trigger will retry", mode=mode.value,
                           error=e.message, error_type=type(e).__name__)
            return None

    def on_order_placed(self) -> asyncio.Task:
        """Fire an incremental sync without waiting for it."""
        return self._spawn(self._incremental_sync(SyncMode.ORDER), "order_sync")

    async def place_order(self, order: OrderRequest) -> Dict[str, Any]:
        response = await self.sync_service.place_order(order)
        self.on_order_placed()
        return response

    def status(self) -> Dict[str, Any]:
        snapshot = self.auth_service.session_manager.snapshot()
        return {
            "state": self.state.value,
            "broker": self.settings.broker.name,
            "has_token": snapshot.has_token,
            "token_expired": snapshot.is_expired() if snapshot.has_token else None,
            "account_id": snapshot.account_id,
            "account_name": snapshot.account_name,
            "store_ready": self.store_ready,
            "backfill_attempted": self.backfill_attempted,
            "in_flight_syncs": len(self._in_flight),
            "subscribers": self.broadcast_hub.subscriber_count,
        }

    async def stop(self) -> None:
        """Cancel timers and in-flight triggers, then release connections."""
        if self.state is OrchestratorState.STOPPED:
            return

        tasks = list(self._timers) + list(self._in_flight)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._timers.clear()
        self._in_flight.clear()

        self.broadcast_hub.close_all()
        await self.broker_client.close()
        await self.db_manager.shutdown()
        self.state = OrchestratorState.STOPPED
        logger.info("Trade sync orchestrator stopped")
