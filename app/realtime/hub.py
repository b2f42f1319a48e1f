"""Process-wide realtime hub owning the presence registry and channel router."""

import logging

from app.realtime.presence import PresenceRegistry
from app.realtime.router import ChannelRouter

logger = logging.getLogger(__name__)


class RealtimeHub:
    """
    Single owner of realtime state for one process.

    Created in the application lifespan, stored on ``app.state.hub`` and
    injected into request and WebSocket handlers.
    """

    def __init__(self):
        self.presence = PresenceRegistry()
        self.router = ChannelRouter(self.presence)

    def register(self, connection) -> None:
        self.router.attach(connection)

    def join_user(self, connection, user_id) -> bool:
        """Bind ``connection`` to ``user_id``. Returns True if the user just came online."""
        first = self.presence.connection_join(user_id, connection)
        connection.user_id = user_id
        return first

    def release(self, connection) -> str | None:
        """Drop every membership of ``connection``. Returns the user id if it just went offline."""
        user_key = self.presence.user_of(connection)
        self.router.detach(connection)
        went_offline = self.presence.connection_leave(connection)
        return user_key if went_offline else None

    def is_online(self, user_id) -> bool:
        return self.presence.is_online(user_id)

    async def shutdown(self) -> None:
        connections = self.router.connections
        for connection in connections:
            self.release(connection)
            close = getattr(connection, "close", None)
            if close is not None:
                await close()
        logger.info("Realtime hub closed %d connections", len(connections))
