"""In-process registry of which connection currently represents each user."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class PresenceRegistry:
    """Maps user identifiers to their active connection identifier.

    Presence is best effort and local to this process: entries live only in
    memory and a restart forgets every user. Only the most recent connection
    of a user is tracked, so a later ``join`` replaces an earlier one.

    The registry is passive. It never notifies anyone; the session manager
    decides who hears about presence changes.
    """

    def __init__(self) -> None:
        self._by_user: dict[int, str] = {}
        self._by_connection: dict[str, int] = {}

    def join(self, user_id: int, connection_id: str) -> None:
        """Record ``connection_id`` as the active connection of ``user_id``."""
        previous = self._by_user.get(user_id)
        if previous is not None and previous != connection_id:
            self._by_connection.pop(previous, None)
        stale_user = self._by_connection.get(connection_id)
        if stale_user is not None and stale_user != user_id:
            self._by_user.pop(stale_user, None)

        self._by_user[user_id] = connection_id
        self._by_connection[connection_id] = user_id
        logger.debug("User %s online via %s", user_id, connection_id)

    def leave(self, connection_id: str) -> int | None:
        """Remove the entry owned by ``connection_id``.

        Returns:
            The user that went offline, or None if the connection held no entry.
        """
        user_id = self._by_connection.pop(connection_id, None)
        if user_id is None:
            return None
        if self._by_user.get(user_id) == connection_id:
            del self._by_user[user_id]
        logger.debug("User %s offline (connection %s)", user_id, connection_id)
        return user_id

    def is_online(self, user_id: int) -> bool:
        return user_id in self._by_user

    def online_users(self) -> set[int]:
        return set(self._by_user)

    def clear(self) -> None:
        """Forget every entry; used when the server shuts down."""
        self._by_user.clear()
        self._by_connection.clear()

    def __len__(self) -> int:
        return len(self._by_user)
