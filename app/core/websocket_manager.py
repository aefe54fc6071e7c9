"""
Realtime fan-out to WebSocket clients.

Clients subscribe to any mix of user, portfolio and contest ids and only
receive updates scoped to those ids; stock updates go to everyone. There
is no replay: a client that connects late only sees later events.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

from fastapi import WebSocket

from app.core.metrics import WS_CONNECTIONS, WS_MESSAGES

logger = logging.getLogger(__name__)

SUBSCRIPTION_FIELDS = {
    "userId": "user_ids",
    "portfolioId": "portfolio_ids",
    "contestId": "contest_ids",
}


class ClientConnection:
    """Track one connected client and its subscriptions."""

    def __init__(self, websocket: WebSocket, client_id: str):
        self.websocket = websocket
        self.client_id = client_id
        self.user_ids: Set[str] = set()
        self.portfolio_ids: Set[str] = set()
        self.contest_ids: Set[str] = set()
        self.connected_at = datetime.now(timezone.utc)

    def __repr__(self):
        return f"<ClientConnection(id={self.client_id}, contests={len(self.contest_ids)}, portfolios={len(self.portfolio_ids)})>"


class WebSocketManager:
    """Registry of connected clients with scoped broadcast helpers."""

    def __init__(self):
        self._clients: Dict[str, ClientConnection] = {}
        self._lock = asyncio.Lock()
        self._counter = 0

    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> ClientConnection:
        """Accept the socket, register it and greet it."""
        await websocket.accept()
        async with self._lock:
            self._counter += 1
            client = ClientConnection(websocket, f"ws_{self._counter}")
            self._clients[client.client_id] = client
        WS_CONNECTIONS.set(len(self._clients))
        logger.info(f"WebSocket connected: {client.client_id} ({len(self._clients)} clients)")
        await self._send(client, {"type": "connected", "message": "Connected to realtime updates"})
        return client

    async def disconnect(self, client: ClientConnection) -> None:
        async with self._lock:
            removed = self._clients.pop(client.client_id, None)
        if removed is not None:
            WS_CONNECTIONS.set(len(self._clients))
            logger.info(f"WebSocket disconnected: {client.client_id} ({len(self._clients)} clients)")

    async def handle_message(self, client: ClientConnection, raw: str) -> None:
        """
        Apply one client message.

        Supported types are ``subscribe``, ``unsubscribe`` and ``ping``.
        Malformed or unknown messages are logged and ignored.
        """
        try:
            message = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed message from {client.client_id}: {str(raw)[:100]}")
            return
        if not isinstance(message, dict):
            logger.warning(f"Ignoring non-object message from {client.client_id}")
            return

        msg_type = message.get("type")
        if msg_type == "ping":
            await self._send(client, {"type": "pong"})
        elif msg_type in ("subscribe", "unsubscribe"):
            for field, attr in SUBSCRIPTION_FIELDS.items():
                value = message.get(field)
                if value is None:
                    continue
                keys: Set[str] = getattr(client, attr)
                if msg_type == "subscribe":
                    keys.add(str(value))
                else:
                    keys.discard(str(value))
            logger.debug(f"{client.client_id} {msg_type}d: {client!r}")
        else:
            logger.debug(f"Ignoring unknown message type {msg_type!r} from {client.client_id}")

    async def _send(self, client: ClientConnection, payload: Dict[str, Any]) -> bool:
        try:
            await client.websocket.send_text(json.dumps(payload, default=str))
            WS_MESSAGES.labels(type=payload.get("type", "unknown")).inc()
            return True
        except Exception as e:
            logger.warning(f"Send to {client.client_id} failed, dropping client: {e}")
            await self.disconnect(client)
            return False

    async def _broadcast(self, payload: Dict[str, Any],
                         predicate: Optional[Callable[[ClientConnection], bool]] = None) -> int:
        """Send to every matching client; returns the number delivered."""
        targets = [c for c in list(self._clients.values()) if predicate is None or predicate(c)]
        delivered = 0
        for client in targets:
            if await self._send(client, payload):
                delivered += 1
        return delivered

    async def emit_portfolio_update(self, portfolio_id, data: Dict[str, Any]) -> int:
        key = str(portfolio_id)
        return await self._broadcast(
            {"type": "portfolio_update", "portfolioId": key, "data": data},
            lambda c: key in c.portfolio_ids,
        )

    async def emit_contest_update(self, contest_id, data: Any) -> int:
        key = str(contest_id)
        return await self._broadcast(
            {"type": "contest_update", "contestId": key, "data": data},
            lambda c: key in c.contest_ids,
        )

    async def emit_stock_update(self, symbol: str, price: float) -> int:
        return await self._broadcast({"type": "stock_update", "symbol": symbol, "price": price})

    async def close_all(self) -> None:
        for client in list(self._clients.values()):
            try:
                await client.websocket.close()
            except Exception as e:
                logger.debug(f"Error closing {client.client_id}: {e}")
            await self.disconnect(client)
