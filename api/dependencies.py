from fastapi import Depends
from dependency_injector.wiring import inject, Provide

from app.containers import AppContainer
from app.orchestrator import SyncOrchestrator
from core.config.settings import Settings
from services.auth.service import AuthService
from services.broadcast.hub import BroadcastHub
from services.trade_store.repository import TradeStore
from services.trade_sync.service import TradeSyncService


@inject
def get_settings(
    settings: Settings = Depends(Provide[AppContainer.settings])
) -> Settings:
    """Get application settings for API endpoints"""
    return settings


@inject
def get_trade_store(
    trade_store: TradeStore = Depends(Provide[AppContainer.trade_store])
) -> TradeStore:
    return trade_store


@inject
def get_trade_sync_service(
    sync_service: TradeSyncService = Depends(Provide[AppContainer.trade_sync_service])
) -> TradeSyncService:
    return sync_service


@inject
def get_auth_service(
    auth_service: AuthService = Depends(Provide[AppContainer.auth_service])
) -> AuthService:
    return auth_service


@inject
def get_broadcast_hub(
    broadcast_hub: BroadcastHub = Depends(Provide[AppContainer.broadcast_hub])
) -> BroadcastHub:
    return broadcast_hub


@inject
def get_orchestrator(
    orchestrator: SyncOrchestrator = Depends(Provide[AppContainer.orchestrator])
) -> SyncOrchestrator:
    return orchestrator
