"""Realtime channel router: chat-scoped topics and user-scoped delivery."""

import logging
from collections.abc import Hashable, Iterable
from typing import Any

from fastapi.encoders import jsonable_encoder

from app.realtime.presence import PresenceRegistry

logger = logging.getLogger(__name__)


def chat_topic(chat_id) -> str:
    return f"chat:{chat_id}"


class ChannelRouter:
    """
    Fans events out to connections.

    Connections subscribe to any number of chat topics. ``publish`` targets a
    chat topic; ``publish_to_user`` resolves a user's handles through the
    presence registry; ``broadcast`` reaches every attached connection.
    Delivery calls each handle's non-blocking ``send``; a failing handle is
    logged and skipped.
    """

    def __init__(self, presence: PresenceRegistry):
        self.presence = presence
        self._connections: set[Hashable] = set()
        self._topics: dict[str, set[Hashable]] = {}
        self._subscriptions: dict[Hashable, set[str]] = {}

    # ----- membership -----

    def attach(self, handle: Hashable) -> None:
        self._connections.add(handle)

    def detach(self, handle: Hashable) -> list[str]:
        """Drop ``handle`` and every subscription it holds."""
        self._connections.discard(handle)
        return self.unsubscribe_all(handle)

    def subscribe(self, handle: Hashable, chat_id) -> bool:
        topic = chat_topic(chat_id)
        members = self._topics.setdefault(topic, set())
        if handle in members:
            return False
        members.add(handle)
        self._subscriptions.setdefault(handle, set()).add(topic)
        return True

    def unsubscribe(self, handle: Hashable, chat_id) -> bool:
        topic = chat_topic(chat_id)
        members = self._topics.get(topic)
        if not members or handle not in members:
            return False
        members.discard(handle)
        if not members:
            del self._topics[topic]

        topics = self._subscriptions.get(handle)
        if topics is not None:
            topics.discard(topic)
            if not topics:
                del self._subscriptions[handle]
        return True

    def unsubscribe_all(self, handle: Hashable) -> list[str]:
        topics = list(self._subscriptions.get(handle, ()))
        for topic in topics:
            members = self._topics.get(topic)
            if members is None:
                continue
            members.discard(handle)
            if not members:
                del self._topics[topic]
        self._subscriptions.pop(handle, None)
        return topics

    def unsubscribe_user(self, user_id, chat_id) -> int:
        """Unsubscribe every handle of ``user_id`` from ``chat_id``, announced or not."""
        key = str(user_id)
        handles = set(self.presence.handles_for(user_id))
        handles.update(
            handle
            for handle in self.subscribers(chat_id)
            if getattr(handle, "user_id", None) is not None and str(handle.user_id) == key
        )
        return sum(self.unsubscribe(handle, chat_id) for handle in handles)

    def close_topic(self, chat_id) -> int:
        """Drop a chat's topic entirely, e.g. once the chat is gone."""
        members = list(self._topics.get(chat_topic(chat_id), ()))
        for handle in members:
            self.unsubscribe(handle, chat_id)
        return len(members)

    def subscribers(self, chat_id) -> frozenset:
        return frozenset(self._topics.get(chat_topic(chat_id), ()))

    def topics_for(self, handle: Hashable) -> frozenset:
        return frozenset(self._subscriptions.get(handle, ()))

    @property
    def connections(self) -> frozenset:
        return frozenset(self._connections)

    # ----- delivery -----

    def publish(self, chat_id, event: str, data: Any, exclude: Hashable | None = None) -> int:
        """Deliver to every subscriber of ``chat_id`` except ``exclude``."""
        return self._deliver(self.subscribers(chat_id), event, data, exclude)

    def publish_to_user(self, user_id, event: str, data: Any, exclude: Hashable | None = None) -> int:
        """Deliver to all of ``user_id``'s live handles. Zero means deliver later via history."""
        return self._deliver(self.presence.handles_for(user_id), event, data, exclude)

    def broadcast(self, event: str, data: Any, exclude: Hashable | None = None) -> int:
        return self._deliver(self.connections, event, data, exclude)

    def _deliver(self, handles: Iterable[Hashable], event: str, data: Any, exclude) -> int:
        payload = jsonable_encoder(data)
        delivered = 0
        for handle in handles:
            if handle is exclude:
                continue
            try:
                if handle.send(event, payload):
                    delivered += 1
            except Exception as e:
                logger.warning("Delivery of %s to %r failed: %s", event, handle, e)
        return delivered
