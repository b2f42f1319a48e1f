"""Best-effort event publishing used by mutations once they are persisted."""

import logging
from collections.abc import Callable, Hashable
from typing import Any

from app.exceptions.base import UpstreamUnavailableError
from app.realtime.hub import RealtimeHub

logger = logging.getLogger(__name__)


class EventPublisher:
    """
    Publishes realtime events without ever failing the caller.

    Transport errors are logged and swallowed: by the time an event is
    published the mutation is already durable and clients can recover it
    from history.
    """

    def __init__(self, hub: RealtimeHub | None = None, origin: Hashable | None = None):
        self.hub = hub
        self.origin = origin

    def for_origin(self, origin: Hashable | None) -> "EventPublisher":
        """Publisher that suppresses the echo back to ``origin``."""
        return EventPublisher(self.hub, origin)

    def to_chat(self, chat_id, event: str, data: Any, include_origin: bool = False) -> int:
        exclude = None if include_origin else self.origin
        return self._guard(event, f"chat {chat_id}", lambda: self.hub.router.publish(chat_id, event, data, exclude))

    def to_user(self, user_id, event: str, data: Any) -> int:
        return self._guard(event, f"user {user_id}", lambda: self.hub.router.publish_to_user(user_id, event, data))

    def to_origin(self, event: str, data: Any) -> int:
        if self.origin is None:
            return 0
        return self._guard(event, "origin", lambda: int(self.origin.send(event, data)))

    def broadcast(self, event: str, data: Any) -> int:
        return self._guard(event, "all connections", lambda: self.hub.router.broadcast(event, data))

    def drop_user(self, chat_id, user_id) -> int:
        """Stop routing ``chat_id`` events to a user who left it."""
        return self._guard("unsubscribe", f"user {user_id}", lambda: self.hub.router.unsubscribe_user(user_id, chat_id))

    def close_chat(self, chat_id) -> int:
        return self._guard("close", f"chat {chat_id}", lambda: self.hub.router.close_topic(chat_id))

    def _guard(self, event: str, target: str, deliver: Callable[[], int]) -> int:
        if self.hub is None:
            logger.debug("No realtime hub; %s to %s not published", event, target)
            return 0
        try:
            return deliver()
        except Exception as e:
            error = UpstreamUnavailableError(f"Could not publish {event}")
            logger.warning("%s to %s: %s", error.message, target, e)
            return 0
