"""Connection registry and broadcast groups for the chat WebSocket.

A broadcast group is the set of live connections currently subscribed to one
conversation. Delivery is best effort: a connection that fails to accept a
frame is dropped from the hub and never affects delivery to the others.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable
from typing import Any, Protocol

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

Frame = dict[str, Any]


class Connection(Protocol):
    """Anything that can receive JSON frames."""

    connection_id: str

    async def send_json(self, data: Frame) -> None: ...


class WebSocketConnection:
    """Adapter giving a FastAPI WebSocket a stable connection identifier."""

    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self.websocket = websocket
        self.connection_id = connection_id or uuid.uuid4().hex

    async def send_json(self, data: Frame) -> None:
        await self.websocket.send_json(data)

    def __repr__(self) -> str:
        return f"<WebSocketConnection {self.connection_id}>"


class BroadcastHub:
    """Tracks live connections and their conversation subscriptions."""

    def __init__(self) -> None:
        self._connections: dict[str, Connection] = {}
        self._groups: defaultdict[int, set[str]] = defaultdict(set)

    def register(self, connection: Connection) -> None:
        self._connections[connection.connection_id] = connection

    def unregister(self, connection_id: str) -> bool:
        """Forget a connection and drop it from every group.

        Returns:
            True if the connection was registered.
        """
        existed = self._connections.pop(connection_id, None) is not None
        for group_id in list(self._groups):
            members = self._groups[group_id]
            members.discard(connection_id)
            if not members:
                del self._groups[group_id]
        return existed

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self._connections

    def subscribe(self, group_id: int, connection_id: str) -> None:
        if connection_id not in self._connections:
            raise KeyError(connection_id)
        self._groups[group_id].add(connection_id)

    def members(self, group_id: int) -> set[str]:
        return set(self._groups.get(group_id, ()))

    def connection_count(self) -> int:
        return len(self._connections)

    async def send(self, connection_id: str, frame: Frame) -> bool:
        """Deliver ``frame`` to a single connection."""
        connection = self._connections.get(connection_id)
        if connection is None:
            return False
        delivered = await self._safe_send(connection, frame)
        if not delivered:
            self.unregister(connection_id)
        return delivered

    async def emit_to_group(
        self, group_id: int, frame: Frame, exclude: str | None = None
    ) -> int:
        """Deliver ``frame`` to every member of a group except ``exclude``.

        Returns:
            Number of connections the frame reached.
        """
        targets = [cid for cid in self.members(group_id) if cid != exclude]
        return await self._fan_out(targets, frame)

    async def emit_all(self, frame: Frame, exclude: str | None = None) -> int:
        """Deliver ``frame`` to every registered connection except ``exclude``."""
        targets = [cid for cid in self._connections if cid != exclude]
        return await self._fan_out(targets, frame)

    def clear(self) -> None:
        self._connections.clear()
        self._groups.clear()

    async def _fan_out(self, connection_ids: Iterable[str], frame: Frame) -> int:
        connections = [
            self._connections[cid] for cid in connection_ids if cid in self._connections
        ]
        if not connections:
            return 0

        results = await asyncio.gather(
            *[self._safe_send(connection, frame) for connection in connections],
            return_exceptions=True,
        )

        delivered = 0
        for connection, result in zip(connections, results):
            if result is True:
                delivered += 1
            else:
                self.unregister(connection.connection_id)
        return delivered

    async def _safe_send(self, connection: Connection, frame: Frame) -> bool:
        try:
            await connection.send_json(frame)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.warning(
                "Dropping connection %s after failed send: %s", connection.connection_id, exc
            )
            return False
        return True
