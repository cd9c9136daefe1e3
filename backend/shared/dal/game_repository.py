"""Abstract interface for flip record persistence."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shared.dal.models import Game


class GameRepository(ABC):
    """Abstract interface for flip record persistence.

    Records are insert-only. At most one record exists per (room_id, nonce);
    a second insert for the same pair raises PersistenceError.
    """

    @abstractmethod
    async def create_game(self, game: Game) -> Game: ...

    @abstractmethod
    async def get_game(self, game_id: str) -> Game | None: ...

    @abstractmethod
    async def get_games_by_room(self, room_id: str) -> list[Game]:
        """Return the room's flip records ordered by nonce."""
