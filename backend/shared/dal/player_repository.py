"""Abstract interface for player persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import Player


class PlayerRepository(ABC):
    """Abstract interface for player persistence.

    Players belong to exactly one room; inserting a player for a room that
    does not exist raises PersistenceError.
    """

    @abstractmethod
    async def create_player(self, player: Player) -> Player: ...

    @abstractmethod
    async def get_player(self, player_id: str) -> Player | None: ...

    @abstractmethod
    async def get_players_by_connection(self, connection_id: str) -> list[Player]: ...

    @abstractmethod
    async def get_players_by_room(self, room_id: str) -> list[Player]:
        """Return the room's players, creator first, then by join time."""

    @abstractmethod
    async def delete_player(self, player_id: str) -> bool: ...
