"""
Unit tests for the WebSocket fan-out manager
"""

import json
import pytest

from app.core.websocket_manager import WebSocketManager


class FakeWebSocket:
    def __init__(self, fail=False):
        self.accepted = False
        self.closed = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_text(self, text):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(json.loads(text))

    async def close(self):
        self.closed = True


@pytest.fixture
def manager():
    return WebSocketManager()


class TestConnections:

    async def test_connect_greets_client(self, manager):
        ws = FakeWebSocket()
        client = await manager.connect(ws)
        assert ws.accepted
        assert ws.sent[0]["type"] == "connected"
        assert manager.client_count() == 1
        assert client.client_id == "ws_1"

    async def test_disconnect_twice(self, manager):
        client = await manager.connect(FakeWebSocket())
        await manager.disconnect(client)
        await manager.disconnect(client)
        assert manager.client_count() == 0

    async def test_close_all(self, manager):
        sockets = [FakeWebSocket(), FakeWebSocket()]
        for ws in sockets:
            await manager.connect(ws)
        await manager.close_all()
        assert all(ws.closed for ws in sockets)
        assert manager.client_count() == 0


class TestMessages:

    async def test_subscribe_and_unsubscribe(self, manager):
        client = await manager.connect(FakeWebSocket())
        await manager.handle_message(client, json.dumps({"type": "subscribe", "contestId": "c1", "userId": "u1"}))
        assert client.contest_ids == {"c1"}
        assert client.user_ids == {"u1"}

        await manager.handle_message(client, json.dumps({"type": "unsubscribe", "contestId": "c1"}))
        assert client.contest_ids == set()
        assert client.user_ids == {"u1"}

    async def test_ping(self, manager):
        ws = FakeWebSocket()
        client = await manager.connect(ws)
        await manager.handle_message(client, '{"type": "ping"}')
        assert ws.sent[-1] == {"type": "pong"}

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"type": "dance"}', ""])
    async def test_bad_messages_ignored(self, manager, raw):
        ws = FakeWebSocket()
        client = await manager.connect(ws)
        await manager.handle_message(client, raw)
        assert len(ws.sent) == 1
        assert manager.client_count() == 1


class TestBroadcasts:

    async def test_portfolio_update_scoped(self, manager):
        subscribed, other = FakeWebSocket(), FakeWebSocket()
        client = await manager.connect(subscribed)
        await manager.connect(other)
        await manager.handle_message(client, json.dumps({"type": "subscribe", "portfolioId": "p1"}))

        delivered = await manager.emit_portfolio_update("p1", {"roi": 1.5})

        assert delivered == 1
        assert subscribed.sent[-1] == {"type": "portfolio_update", "portfolioId": "p1", "data": {"roi": 1.5}}
        assert len(other.sent) == 1

    async def test_contest_update_accepts_uuid(self, manager):
        import uuid
        contest_id = uuid.uuid4()
        ws = FakeWebSocket()
        client = await manager.connect(ws)
        await manager.handle_message(client, json.dumps({"type": "subscribe", "contestId": str(contest_id)}))

        assert await manager.emit_contest_update(contest_id, {"leaderboard": []}) == 1
        assert ws.sent[-1]["contestId"] == str(contest_id)

    async def test_stock_update_goes_to_everyone(self, manager):
        for _ in range(3):
            await manager.connect(FakeWebSocket())
        assert await manager.emit_stock_update("TCS", 3500.0) == 3

    async def test_failed_send_drops_client(self, manager):
        ws = FakeWebSocket()
        client = await manager.connect(ws)
        await manager.handle_message(client, json.dumps({"type": "subscribe", "contestId": "c1"}))
        ws.fail = True

        assert await manager.emit_contest_update("c1", {}) == 0
        assert manager.client_count() == 0
