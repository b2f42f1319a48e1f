"""WebSocket endpoint and the per-connection event dispatcher."""

import json
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.config import settings
from app.core.dependencies import auth, get_hub, resolve_user
from app.database import get_session_factory
from app.domains.chat.service import ChatService
from app.domains.direct_message.service import DirectMessageService
from app.domains.user.service import UserService
from app.exceptions.base import BaseAppException, InvalidArgumentError, PermissionDeniedError
from app.realtime.connection import Connection
from app.realtime.hub import RealtimeHub
from app.realtime.publisher import EventPublisher
from models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

UNAUTHENTICATED_CLOSE_CODE = 4001


def _field(data: Any, *names: str, scalar: bool = False):
    """Read a field from an event payload; bare scalars are accepted where the event takes one id."""
    if scalar and not isinstance(data, dict):
        return data
    if not isinstance(data, dict):
        return None
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


def _text(data: Any, name: str) -> str | None:
    value = _field(data, name)
    if value is not None and not isinstance(value, str):
        raise InvalidArgumentError(f"{name} must be a string")
    return value


def _uuid(value, field: str) -> UUID:
    try:
        return UUID(str(value))
    except (TypeError, ValueError) as e:
        raise InvalidArgumentError(f"{field} must be a valid id") from e


class RealtimeGateway:
    """
    Dispatches inbound events of one authenticated connection.

    Each event runs in its own short database session. Mutating events go
    through the same service operations as the REST API, with the publisher
    bound to this connection so the sender does not receive its own echo.
    Errors are reported back as an ``error`` event and the connection stays
    open.
    """

    def __init__(
        self,
        hub: RealtimeHub,
        connection: Connection,
        user: User,
        session_factory: async_sessionmaker,
    ):
        self.hub = hub
        self.connection = connection
        self.connection.user_id = user.id
        self.user = user
        self.session_factory = session_factory
        self.publisher = EventPublisher(hub, origin=connection)
        self.handlers = {
            "user:join": self.user_join,
            "chat:join": self.chat_join,
            "chat:getParticipants": self.chat_get_participants,
            "chat:leave": self.chat_leave,
            "message:send": self.message_send,
            "chat:typing": self.chat_typing,
            "chat:stopTyping": self.chat_stop_typing,
            "message:read": self.message_read,
            "dm:send": self.dm_send,
            "ping": self.ping,
        }

    async def handle_event(self, event: str, data: Any) -> None:
        handler = self.handlers.get(event)
        if handler is None:
            self.connection.send("error", {"message": f"Unknown event: {event}", "event": event})
            return

        try:
            await handler(data)
        except BaseAppException as e:
            self.connection.send(
                "error", {"message": e.message, "errorCode": e.error_code, "event": event}
            )
        except HTTPException as e:
            self.connection.send("error", {"message": str(e.detail), "event": event})
        except Exception:
            logger.exception("Realtime event %s failed for connection %s", event, self.connection.id)
            self.connection.send("error", {"message": "Internal server error", "event": event})

    # ===== Presence =====

    async def user_join(self, data: Any) -> None:
        user_id = _field(data, "userId", scalar=True)
        if user_id is not None and _uuid(user_id, "userId") != self.user.id:
            raise PermissionDeniedError("Cannot join as another user")

        if not self.hub.join_user(self.connection, self.user.id):
            return
        try:
            async with self.session_factory() as db:
                await UserService(db).set_presence(self.user.id, True)
        except SQLAlchemyError as e:
            logger.warning("Could not persist online state for user %s: %s", self.user.id, e)
        self.publisher.broadcast("userStatusChanged", {"userId": str(self.user.id), "isOnline": True})

    async def disconnect(self) -> None:
        """Release every membership of the connection. Safe to call on any exit path."""
        offline_user = self.hub.release(self.connection)
        await self.connection.close()
        if offline_user is None:
            return

        try:
            async with self.session_factory() as db:
                await UserService(db).set_presence(self.user.id, False)
        except SQLAlchemyError as e:
            logger.warning("Could not persist offline state for user %s: %s", offline_user, e)
        self.publisher.broadcast("userStatusChanged", {"userId": offline_user, "isOnline": False})

    # ===== Chat topics =====

    async def chat_join(self, data: Any) -> None:
        chat_id = _uuid(_field(data, "chatId", scalar=True), "chatId")
        async with self.session_factory() as db:
            service = ChatService(db, self.publisher)
            chat = await service.join_chat(chat_id, await self._acting_user(db))
            participants = [p.to_wire() for p in service.participants_payload(chat)]

        self.hub.router.subscribe(self.connection, chat_id)
        self.connection.send("chat:participants", {"chatId": str(chat_id), "participants": participants})

    async def chat_get_participants(self, data: Any) -> None:
        chat_id = _uuid(_field(data, "chatId", scalar=True), "chatId")
        async with self.session_factory() as db:
            service = ChatService(db, self.publisher)
            user = await self._acting_user(db)
            participants = [p.to_wire() for p in await service.get_participants(chat_id, user)]

        payload = {"chatId": str(chat_id), "participants": participants}
        self.connection.send("chat:participants", payload)
        self.publisher.to_chat(chat_id, "chat:participants", payload)

    async def chat_leave(self, data: Any) -> None:
        chat_id = _uuid(_field(data, "chatId", scalar=True), "chatId")
        self.hub.router.unsubscribe(self.connection, chat_id)

    def _require_subscribed(self, chat_id: UUID) -> None:
        if self.connection not in self.hub.router.subscribers(chat_id):
            raise PermissionDeniedError("Join the chat before sending events to it")

    async def _acting_user(self, db) -> User:
        """The connection's user as an instance of ``db``'s session."""
        user = await db.get(User, self.user.id)
        if user is None or not user.is_active:
            raise PermissionDeniedError("User account is no longer available")
        return user

    # ===== Messages =====

    async def message_send(self, data: Any) -> None:
        chat_id = _uuid(_field(data, "chatId"), "chatId")
        sender_id = _field(data, "userId", "sender")
        if sender_id is not None and _uuid(sender_id, "userId") != self.user.id:
            raise PermissionDeniedError("Cannot send messages as another user")

        async with self.session_factory() as db:
            await ChatService(db, self.publisher).add_message(
                chat_id,
                await self._acting_user(db),
                _text(data, "content"),
                _text(data, "type") or "text",
                _text(data, "fileUrl"),
            )

    async def message_read(self, data: Any) -> None:
        chat_id = _uuid(_field(data, "chatId"), "chatId")
        raw_ids = _field(data, "messageIds") or []
        message_ids = [_uuid(mid, "messageIds") for mid in raw_ids]
        async with self.session_factory() as db:
            await ChatService(db, self.publisher).mark_read(
                chat_id, await self._acting_user(db), message_ids or None
            )

    async def chat_typing(self, data: Any) -> None:
        chat_id = _uuid(_field(data, "chatId"), "chatId")
        self._require_subscribed(chat_id)
        self.publisher.to_chat(
            chat_id,
            "chat:typing",
            {"chatId": str(chat_id), "userId": str(self.user.id), "username": self.user.username},
        )

    async def chat_stop_typing(self, data: Any) -> None:
        chat_id = _uuid(_field(data, "chatId"), "chatId")
        self._require_subscribed(chat_id)
        self.publisher.to_chat(
            chat_id, "chat:stopTyping", {"chatId": str(chat_id), "userId": str(self.user.id)}
        )

    # ===== Direct messages =====

    async def dm_send(self, data: Any) -> None:
        sender_id = _field(data, "from")
        if sender_id is not None and _uuid(sender_id, "from") != self.user.id:
            raise PermissionDeniedError("Cannot send messages as another user")
        to_user_id = _uuid(_field(data, "to"), "to")

        async with self.session_factory() as db:
            await DirectMessageService(db, self.publisher).send(
                await self._acting_user(db), to_user_id, _text(data, "text")
            )

    async def ping(self, data: Any) -> None:
        self.connection.send("pong", data)


async def authenticate(token: str | None, session_factory: async_sessionmaker) -> User | None:
    """Resolve the connecting user from the ``token`` query parameter."""
    if not token:
        return None
    try:
        payload = await auth.verify_token(token)
        async with session_factory() as db:
            return await resolve_user(payload, db)
    except HTTPException as e:
        logger.info("WebSocket authentication failed: %s", e.detail)
        return None


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str | None = Query(None),
    session_factory: async_sessionmaker = Depends(get_session_factory),
):
    """Realtime channel. Frames are JSON objects of the form ``{"event": ..., "data": ...}``."""
    hub = get_hub(websocket)
    await websocket.accept()

    if hub is None:
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    user = await authenticate(token, session_factory)
    if user is None:
        await websocket.close(code=UNAUTHENTICATED_CLOSE_CODE)
        return

    connection = Connection(websocket)
    connection.start()
    hub.register(connection)
    gateway = RealtimeGateway(hub, connection, user, session_factory)
    logger.info("WebSocket %s opened for user %s", connection.id, user.id)

    try:
        while True:
            text = await websocket.receive_text()
            if len(text) > settings.websocket_max_message_size:
                connection.send("error", {"message": "Message too large"})
                continue
            try:
                frame = json.loads(text)
            except json.JSONDecodeError:
                connection.send("error", {"message": "Invalid JSON format"})
                continue
            if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
                connection.send("error", {"message": "Frames must be objects with an event name"})
                continue

            await gateway.handle_event(frame["event"], frame.get("data"))
    except WebSocketDisconnect as e:
        logger.info("WebSocket %s closed with code %s", connection.id, e.code)
    finally:
        await gateway.disconnect()
