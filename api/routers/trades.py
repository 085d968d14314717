from fastapi import APIRouter, Body, Depends
from typing import Any, Dict, List, Optional

from api.dependencies import get_trade_store, get_trade_sync_service
from api.schemas.responses import SyncWindowRequest
from core.logging import get_logger
from services.trade_store.repository import TradeStore
from services.trade_sync.service import SyncMode, TradeSyncService

router = APIRouter(prefix="/trades", tags=["Trades"])

logger = get_logger("api.routers.trades", component="api")


@router.get("")
async def list_trades(
    store: TradeStore = Depends(get_trade_store)
) -> List[Dict[str, Any]]:
    """All stored trades, newest first, in the camelCase trade shape."""
    trades = await store.list_all()
    return [trade.to_payload() for trade in trades]


@router.delete("")
async def clear_trades(
    store: TradeStore = Depends(get_trade_store)
):
    deleted = await store.clear_all()
    logger.info("Trades cleared via API", rows_deleted=deleted)
    return {
        "success": True,
        "message": "Trades table cleared successfully",
        "deleted": deleted,
    }


@router.post("/sync")
async def sync_trades(
    request: Optional[SyncWindowRequest] = Body(None),
    sync_service: TradeSyncService = Depends(get_trade_sync_service),
):
    """
    Run one window sync now.

    Without a window the current month to date is synced. The account defaults
    to the one resolved at startup.
    """
    request = request or SyncWindowRequest()
    if request.start is None:
        result = await sync_service.sync_month_to_date(account_id=request.account_id)
    else:
        account_id = request.account_id
        if account_id is None:
            account_id = sync_service.auth_service.require_account_id()
        result = await sync_service.sync_window(account_id, request.start, request.end, mode=SyncMode.MANUAL)

    payload = result.to_dict()
    payload["trades"] = [trade.to_payload() for trade in result.inserted_trades]
    return payload
