"""Abstract connection protocol for MessagePack binary communication."""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel

from coinflip.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    A live client connection as seen by the session layer.

    Session and routing logic only talk to this interface, so tests can drive
    them with an in-memory connection instead of a real WebSocket.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Ephemeral identifier; the only player identity this service knows."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, message: BaseModel | dict[str, Any]) -> None:
        await self.send_bytes(encode(message))

    async def receive_message(self) -> dict[str, Any]:
        raw = await self.receive_bytes()
        return decode(raw)
