# Dependency injection container for the trade sync engine
from dependency_injector import containers, providers
from prometheus_client import CollectorRegistry

from core.config.settings import Settings
from core.database.connection import DatabaseManager
from core.monitoring.prometheus_metrics import PrometheusMetricsCollector
from services.auth.service import AuthService
from services.auth.session_manager import SessionManager
from services.broadcast.hub import BroadcastHub
from services.broker.client import BrokerClient
from services.trade_store.repository import TradeStore
from services.trade_sync.service import TradeSyncService
from app.orchestrator import SyncOrchestrator


class AppContainer(containers.DeclarativeContainer):
    """Application dependency injection container"""

    # Configuration
    settings = providers.Singleton(Settings)

    # --- Observability: Prometheus ---
    # Shared registry used by API /metrics endpoint and collectors
    prometheus_registry = providers.Singleton(CollectorRegistry)
    prometheus_metrics = providers.Singleton(
        PrometheusMetricsCollector,
        registry=prometheus_registry,
    )

    db_manager = providers.Singleton(
        DatabaseManager,
        db_url=settings.provided.database.url,
        echo=settings.provided.database.echo,
    )

    broker_client = providers.Singleton(
        BrokerClient,
        settings=settings.provided.broker,
    )

    # Single holder of the session token and resolved account
    session_manager = providers.Singleton(SessionManager)

    auth_service = providers.Singleton(
        AuthService,
        settings=settings,
        broker_client=broker_client,
        session_manager=session_manager,
    )

    trade_store = providers.Singleton(
        TradeStore,
        db_manager=db_manager,
        broker_name=settings.provided.broker.provided.name,
    )

    broadcast_hub = providers.Singleton(
        BroadcastHub,
        subscriber_queue_size=settings.provided.broadcast.subscriber_queue_size,
    )

    trade_sync_service = providers.Singleton(
        TradeSyncService,
        settings=settings,
        broker_client=broker_client,
        auth_service=auth_service,
        trade_store=trade_store,
        broadcast_hub=broadcast_hub,
        metrics=prometheus_metrics,
    )

    orchestrator = providers.Singleton(
        SyncOrchestrator,
        settings=settings,
        db_manager=db_manager,
        broker_client=broker_client,
        auth_service=auth_service,
        trade_store=trade_store,
        broadcast_hub=broadcast_hub,
        sync_service=trade_sync_service,
        metrics=prometheus_metrics,
    )
