"""Unit tests for the best-effort event publisher and the realtime connection."""

import asyncio
import logging
import uuid
from unittest.mock import AsyncMock, MagicMock, call

from app.realtime.connection import Connection
from app.realtime.hub import RealtimeHub
from app.realtime.publisher import EventPublisher
from factories import FakeConnection


class TestEventPublisher:
    """Test cases for EventPublisher."""

    def test_without_hub_publishes_nothing(self):
        publisher = EventPublisher()

        assert publisher.to_chat(uuid.uuid4(), "message:receive", {}) == 0
        assert publisher.to_user(uuid.uuid4(), "dm:receive", {}) == 0
        assert publisher.broadcast("userStatusChanged", {}) == 0
        assert publisher.to_origin("message:sent", {}) == 0

    def test_to_chat_skips_origin_by_default(self):
        hub = RealtimeHub()
        chat_id = uuid.uuid4()
        origin, other = FakeConnection(), FakeConnection()
        for connection in (origin, other):
            hub.register(connection)
            hub.router.subscribe(connection, chat_id)
        publisher = EventPublisher(hub, origin=origin)

        publisher.to_chat(chat_id, "message:receive", {"n": 1})
        publisher.to_chat(chat_id, "message:edited", {"n": 2}, include_origin=True)

        assert origin.event_names == ["message:edited"]
        assert other.event_names == ["message:receive", "message:edited"]

    def test_to_origin(self):
        origin = FakeConnection()
        publisher = EventPublisher(RealtimeHub(), origin=origin)

        assert publisher.to_origin("message:sent", {"id": "m1"}) == 1
        assert origin.events("message:sent") == [{"id": "m1"}]

    def test_for_origin_shares_hub(self):
        hub = RealtimeHub()
        origin = FakeConnection()

        bound = EventPublisher(hub).for_origin(origin)

        assert bound.hub is hub
        assert bound.origin is origin

    def test_transport_errors_are_swallowed(self, caplog):
        hub = MagicMock()
        hub.router.publish.side_effect = RuntimeError("broker down")
        publisher = EventPublisher(hub)

        with caplog.at_level(logging.WARNING, logger="app.realtime.publisher"):
            delivered = publisher.to_chat(uuid.uuid4(), "message:receive", {})

        assert delivered == 0
        assert "Could not publish message:receive" in caplog.text

    def test_drop_user_and_close_chat(self):
        hub = RealtimeHub()
        user_id, chat_id = uuid.uuid4(), uuid.uuid4()
        connection = FakeConnection()
        hub.register(connection)
        hub.join_user(connection, user_id)
        hub.router.subscribe(connection, chat_id)
        publisher = EventPublisher(hub)

        assert publisher.drop_user(chat_id, user_id) == 1
        hub.router.subscribe(connection, chat_id)
        assert publisher.close_chat(chat_id) == 1
        assert hub.router.subscribers(chat_id) == frozenset()


class TestConnection:
    """Test cases for the outbound queue of a WebSocket connection."""

    async def test_frames_are_written_in_order(self):
        websocket = AsyncMock()
        connection = Connection(websocket, queue_size=8)
        connection.start()

        connection.send("message:receive", {"n": 1})
        connection.send("message:receive", {"n": 2})
        await asyncio.sleep(0.01)

        assert websocket.send_json.await_args_list == [
            call({"event": "message:receive", "data": {"n": 1}}),
            call({"event": "message:receive", "data": {"n": 2}}),
        ]
        await connection.close()

    def test_full_queue_drops_events(self):
        connection = Connection(AsyncMock(), queue_size=1)

        assert connection.send("a", {}) is True
        assert connection.send("b", {}) is False

    async def test_closed_connection_refuses_events(self):
        connection = Connection(AsyncMock(), queue_size=4)
        connection.start()

        await connection.close()

        assert connection.closed
        assert connection.send("a", {}) is False

    async def test_write_failure_marks_closed(self):
        websocket = AsyncMock()
        websocket.send_json.side_effect = RuntimeError("peer reset")
        connection = Connection(websocket, queue_size=4)
        connection.start()

        connection.send("a", {})
        await asyncio.sleep(0.01)

        assert connection.closed
        await connection.close()
