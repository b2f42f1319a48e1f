"""A live WebSocket connection with a bounded, non-blocking outbound queue."""

import asyncio
import logging
import uuid
from typing import Any

from fastapi import WebSocket

from app.core.config import settings

logger = logging.getLogger(__name__)


class Connection:
    """
    Handle for one WebSocket session.

    Publishers call :meth:`send`, which only enqueues; a writer task drains the
    queue onto the socket. A slow client fills its own queue and starts losing
    events instead of stalling whoever is publishing.
    """

    def __init__(self, websocket: WebSocket, queue_size: int | None = None):
        self.id = uuid.uuid4().hex
        self.websocket = websocket
        self.user_id: uuid.UUID | None = None
        self.closed = False
        self._queue: asyncio.Queue = asyncio.Queue(
            maxsize=queue_size or settings.websocket_send_queue_size
        )
        self._writer: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"<Connection {self.id} user={self.user_id}>"

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain(), name=f"ws-writer-{self.id}")

    def send(self, event: str, data: Any) -> bool:
        """Queue ``event`` for delivery. Returns False when the event was dropped."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait({"event": event, "data": data})
            return True
        except asyncio.QueueFull:
            logger.warning("Dropping %s for connection %s: send queue full", event, self.id)
            return False

    async def _drain(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                await self.websocket.send_json(frame)
            except Exception as e:
                logger.info("Connection %s stopped accepting frames: %s", self.id, e)
                self.closed = True
                return

    async def close(self) -> None:
        self.closed = True
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None
