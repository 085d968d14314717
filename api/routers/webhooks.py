import hmac
import json

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from api.dependencies import get_orchestrator, get_settings
from api.schemas.responses import StandardResponse, TradingViewAlert
from app.orchestrator import SyncOrchestrator
from core.config.settings import Settings
from core.logging import get_logger

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

logger = get_logger("api.routers.webhooks", component="api")


async def _read_alert_body(request: Request) -> dict:
    # TradingView posts JSON with a text/plain content type
    raw = await request.body()
    try:
        body = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Alert body is not valid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Alert body must be a JSON object")
    return body


@router.post("/tradingview")
async def tradingview_alert(
    request: Request,
    settings: Settings = Depends(get_settings),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Turn a TradingView alert into a market order, then sync in the background."""
    expected_key = settings.webhook.tradingview_key
    if not expected_key:
        raise HTTPException(status_code=404, detail="TradingView webhook is not enabled")

    body = await _read_alert_body(request)
    key = body.get("key")
    if not isinstance(key, str) or not hmac.compare_digest(key, expected_key):
        logger.warning("TradingView alert rejected: invalid key")
        raise HTTPException(status_code=401, detail="Invalid or missing key in TradingView alert")

    try:
        alert = TradingViewAlert.model_validate(body)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid TradingView alert: {e.error_count()} errors")

    if alert.broker.lower() != settings.broker.name.lower():
        raise HTTPException(status_code=501, detail=f"Broker '{alert.broker}' is not supported")

    logger.info("TradingView alert accepted", contract_id=alert.contract_id, side=alert.side,
                quantity=alert.quantity, price=alert.price)
    response = await orchestrator.place_order(alert.to_order())
    return StandardResponse(
        status="success",
        message="Order placed from alert; incremental sync triggered",
        data={"orderResult": response},
        broker=settings.broker.name,
    )
