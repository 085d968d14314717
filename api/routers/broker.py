from fastapi import APIRouter, Body, Depends, HTTPException
from typing import Optional

from api.dependencies import get_auth_service, get_orchestrator, get_trade_sync_service
from api.schemas.responses import AccountRequest, ContractRequest, SessionRequest, StandardResponse
from app.orchestrator import SyncOrchestrator
from services.auth.service import AuthService
from services.broker.models import OrderRequest
from services.trade_sync import TradeSyncService

router = APIRouter(prefix="/broker", tags=["Broker"])


@router.post("/session")
async def create_session(
    request: Optional[SessionRequest] = Body(None),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Log in now and replace the session token."""
    request = request or SessionRequest()
    await auth_service.authenticate(username=request.username, api_key=request.api_key)
    return StandardResponse(
        status="success",
        message="Session token acquired",
        data=auth_service.session_manager.snapshot().to_dict(),
        broker=auth_service.settings.broker.name,
    )


@router.post("/account")
async def resolve_account(
    request: Optional[AccountRequest] = Body(None),
    auth_service: AuthService = Depends(get_auth_service),
):
    """Pick the first tradable account whose name starts with the prefix."""
    request = request or AccountRequest()
    account = await auth_service.resolve_account(name_prefix=request.name_prefix)
    if account is None:
        return StandardResponse(
            status="not_found",
            message="No tradable account matches the prefix",
            broker=auth_service.settings.broker.name,
        )
    return StandardResponse(
        status="success",
        data={"account": account.model_dump(by_alias=True)},
        broker=auth_service.settings.broker.name,
    )


@router.post("/order")
async def place_order(
    order: OrderRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Place an order on the resolved account, then sync the last minute in the background."""
    response = await orchestrator.place_order(order)
    return StandardResponse(
        status="success",
        message="Order placed; incremental sync triggered",
        data=response,
        broker=orchestrator.settings.broker.name,
    )


@router.post("/contract")
async def search_contract(
    request: ContractRequest,
    sync_service: TradeSyncService = Depends(get_trade_sync_service),
):
    """Contracts whose name is exactly the symbol; 404 when none match."""
    contracts = await sync_service.find_contracts(request.symbol)
    if not contracts:
        raise HTTPException(status_code=404, detail=f"No contract found for symbol: {request.symbol}")
    return StandardResponse(
        status="success",
        data={"contracts": [contract.model_dump(by_alias=True, mode="json") for contract in contracts]},
        broker=sync_service.settings.broker.name,
    )
