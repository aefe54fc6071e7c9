"""
WebSocket endpoint for realtime portfolio and contest updates
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.api.deps import get_ws_services

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Realtime updates.

    Client messages (JSON):
    - {"type": "subscribe", "userId": ..., "portfolioId": ..., "contestId": ...}
    - {"type": "unsubscribe", ...same keys}
    - {"type": "ping"} -> {"type": "pong"}

    Server messages:
    - {"type": "connected"}
    - {"type": "portfolio_update", "portfolioId": ..., "data": {...}}
    - {"type": "contest_update", "contestId": ..., "data": {...}}
    - {"type": "stock_update", "symbol": ..., "price": ...}
    """
    manager = get_ws_services(websocket).websockets
    client = await manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            await manager.handle_message(client, data)
    except WebSocketDisconnect:
        logger.debug(f"Client {client.client_id} closed the connection")
    except Exception as e:
        logger.warning(f"WebSocket error for {client.client_id}: {e}")
    finally:
        await manager.disconnect(client)
