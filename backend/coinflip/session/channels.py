"""Pub/sub channels keyed by room id."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

import structlog

from coinflip.session.broadcast import broadcast_to_connections

if TYPE_CHECKING:
    from pydantic import BaseModel

    from coinflip.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()


class RoomChannels:
    """Track which live connections subscribe to which room.

    A connection subscribes to at most one room at a time; subscribing to
    another room moves it.
    """

    def __init__(self) -> None:
        self._channels: dict[str, dict[str, ConnectionProtocol]] = {}  # room_id -> {conn_id -> conn}
        self._connection_rooms: dict[str, str] = {}  # conn_id -> room_id (reverse index)

    def subscribe(self, room_id: str, connection: ConnectionProtocol) -> None:
        previous = self._connection_rooms.get(connection.connection_id)
        if previous is not None and previous != room_id:
            self.unsubscribe(connection.connection_id)
        self._channels.setdefault(room_id, {})[connection.connection_id] = connection
        self._connection_rooms[connection.connection_id] = room_id

    def unsubscribe(self, connection_id: str) -> str | None:
        """Remove a connection and return the room_id it was in, or None."""
        room_id = self._connection_rooms.pop(connection_id, None)
        if room_id is not None and room_id in self._channels:
            self._channels[room_id].pop(connection_id, None)
            if not self._channels[room_id]:
                del self._channels[room_id]
        return room_id

    def room_of(self, connection_id: str) -> str | None:
        return self._connection_rooms.get(connection_id)

    def subscribers(self, room_id: str) -> list[ConnectionProtocol]:
        return list(self._channels.get(room_id, {}).values())

    def drop_room(self, room_id: str) -> list[ConnectionProtocol]:
        """Remove a room's channel; its connections stay open but unsubscribed."""
        connections = self._channels.pop(room_id, {})
        for conn_id in connections:
            self._connection_rooms.pop(conn_id, None)
        if connections:
            logger.debug("room channel dropped", room_id=room_id, subscribers=len(connections))
        return list(connections.values())

    async def broadcast(self, room_id: str, message: BaseModel | dict[str, Any]) -> int:
        return await broadcast_to_connections(self.subscribers(room_id), message)

    async def send_to(self, connection_id: str, message: BaseModel | dict[str, Any]) -> bool:
        """Send to one subscribed connection. Returns False if it is gone or the send failed."""
        room_id = self._connection_rooms.get(connection_id)
        if room_id is None:
            return False
        connection = self._channels.get(room_id, {}).get(connection_id)
        if connection is None:
            return False
        with contextlib.suppress(RuntimeError, OSError):
            await connection.send_message(message)
            return True
        return False
