"""Abstract interface for room persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from coinflip.logic.enums import RoomStatus
    from shared.dal.models import Room


class RoomRepository(ABC):
    """Abstract interface for room persistence.

    Room codes are unique at the storage level; an insert with a code already
    in use raises DuplicateRoomCodeError. Deleting a room also deletes its
    players and games.
    """

    @abstractmethod
    async def create_room(self, room: Room) -> Room: ...

    @abstractmethod
    async def get_room(self, room_id: str) -> Room | None: ...

    @abstractmethod
    async def get_room_by_code(self, code: str, status: RoomStatus | None = None) -> Room | None: ...

    @abstractmethod
    async def update_room(self, room: Room) -> Room: ...

    @abstractmethod
    async def delete_room(self, room_id: str) -> bool: ...
