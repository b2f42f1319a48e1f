"""Presence registry: which users are online, through which connections."""

import logging
from collections.abc import Hashable

from app.exceptions.base import InvalidStateError

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """
    Maps a user id to the set of its live connection handles.

    Online and offline transitions are edge-triggered: :meth:`connection_join`
    reports True only for a user's first handle and :meth:`connection_leave`
    only for its last, so extra devices never produce presence events.

    Every method runs to completion without awaiting, which makes each call
    atomic on the event loop; no lock is shared between users.
    """

    def __init__(self):
        self._handles: dict[str, set[Hashable]] = {}
        self._owners: dict[Hashable, str] = {}

    @staticmethod
    def _key(user_id) -> str:
        return str(user_id)

    def connection_join(self, user_id, handle: Hashable) -> bool:
        """Register ``handle`` for ``user_id``. Returns True on the user's offline→online edge."""
        key = self._key(user_id)
        owner = self._owners.get(handle)
        if owner == key:
            return False
        if owner is not None:
            raise InvalidStateError("Connection is already bound to another user")

        handles = self._handles.setdefault(key, set())
        first = not handles
        handles.add(handle)
        self._owners[handle] = key
        if first:
            logger.info("User %s is online", key)
        return first

    def connection_leave(self, handle: Hashable) -> bool:
        """Forget ``handle``. Returns True on its user's online→offline edge."""
        key = self._owners.pop(handle, None)
        if key is None:
            return False

        handles = self._handles.get(key)
        if handles is None:
            return False
        handles.discard(handle)
        if handles:
            return False

        del self._handles[key]
        logger.info("User %s is offline", key)
        return True

    def handles_for(self, user_id) -> frozenset:
        """Live handles of ``user_id``; empty when the user is offline."""
        return frozenset(self._handles.get(self._key(user_id), ()))

    def user_of(self, handle: Hashable) -> str | None:
        return self._owners.get(handle)

    def is_online(self, user_id) -> bool:
        return self._key(user_id) in self._handles

    def online_users(self) -> list[str]:
        return list(self._handles)

    def __len__(self) -> int:
        return len(self._handles)
