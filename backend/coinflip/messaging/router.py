from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from coinflip.logic.enums import ErrorType
from coinflip.messaging.errors import describe_validation_error
from coinflip.messaging.types import (
    CreateRoomMessage,
    ErrorMessage,
    FlipCoinMessage,
    GetRoomStatusMessage,
    JoinRoomMessage,
    PingMessage,
    parse_client_message,
)

if TYPE_CHECKING:
    from coinflip.messaging.protocol import ConnectionProtocol
    from coinflip.session.manager import SessionManager

logger = logging.getLogger(__name__)


class MessageRouter:
    """
    Routes incoming messages to the session manager.

    Contains no transport code, so it can be tested with mock connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except ValidationError as e:
            logger.warning("invalid message from %s: %s", connection.connection_id, e)
            await connection.send_message(
                ErrorMessage(message=describe_validation_error(e), error_type=ErrorType.VALIDATION_ERROR),
            )
            return

        if isinstance(message, CreateRoomMessage):
            await self._session_manager.create_room(connection, side=message.side, player_name=message.player_name)
        elif isinstance(message, JoinRoomMessage):
            await self._session_manager.join_room(connection, code=message.code, player_name=message.player_name)
        elif isinstance(message, FlipCoinMessage):
            await self._session_manager.request_flip(connection, room_id=message.room_id)
        elif isinstance(message, GetRoomStatusMessage):
            await self._session_manager.get_room_status(connection, code=message.code)
        elif isinstance(message, PingMessage):
            await self._session_manager.handle_ping(connection)

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        self._session_manager.register_connection(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.handle_disconnect(connection)
