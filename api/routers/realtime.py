from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
import asyncio

from api.dependencies import get_broadcast_hub
from core.logging import get_logger
from services.broadcast.hub import BroadcastHub

router = APIRouter(tags=["Real-time"])

logger = get_logger("api.routers.realtime", component="api")


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    # Clients only listen; anything they send is ignored
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
    except WebSocketDisconnect:
        return


@router.websocket("/ws/trades")
async def trades_websocket(
    websocket: WebSocket,
    hub: BroadcastHub = Depends(get_broadcast_hub),
):
    """Push every newly stored trade as {"type": "new-trade", "data": <trade>}"""
    # Subscribe before accepting so no event published after the handshake is missed
    subscription = hub.subscribe()
    await websocket.accept()
    disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        while True:
            next_event = asyncio.create_task(subscription.get())
            done, _ = await asyncio.wait({next_event, disconnect}, return_when=asyncio.FIRST_COMPLETED)
            if next_event not in done:
                next_event.cancel()
                break
            event = next_event.result()
            if event is None:
                # Hub closed the subscription (shutdown)
                break
            await websocket.send_json(event)
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.error("Trade stream closed on error", subscription_id=subscription.id, error=str(e))
    finally:
        disconnect.cancel()
        hub.unsubscribe(subscription)
