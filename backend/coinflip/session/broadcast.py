"""Shared broadcast utility for sending messages to connection groups."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Iterable

    from pydantic import BaseModel

    from coinflip.messaging.protocol import ConnectionProtocol


async def broadcast_to_connections(
    connections: Iterable[ConnectionProtocol],
    message: BaseModel | dict[str, Any],
    exclude_connection_id: str | None = None,
) -> int:
    """Send a message to every connection, skipping one if excluded.

    Snapshots the iterable first so a disconnect that mutates the source
    while we yield on send_message cannot break the loop. Returns the
    number of connections the message reached; an empty group is a no-op.
    """
    delivered = 0
    for connection in list(connections):
        if connection.connection_id == exclude_connection_id:
            continue
        with contextlib.suppress(RuntimeError, OSError):
            await connection.send_message(message)
            delivered += 1
    return delivered
