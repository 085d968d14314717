from fastapi import APIRouter, Depends

from api.dependencies import get_orchestrator, get_trade_store
from api.schemas.responses import StandardResponse
from app.orchestrator import SyncOrchestrator
from services.trade_store.repository import TradeStore

router = APIRouter(tags=["System"])


@router.get("/status")
async def get_status(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
    store: TradeStore = Depends(get_trade_store),
):
    """Orchestrator state, session summary and stored trade count."""
    data = orchestrator.status()
    data["stored_trades"] = await store.count()
    data["broadcast"] = orchestrator.broadcast_hub.stats()
    return StandardResponse(status="success", data=data, broker=orchestrator.settings.broker.name)
