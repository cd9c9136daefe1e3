"""Data access layer: repository interfaces and shared persistence models."""

from shared.dal.game_repository import GameRepository
from shared.dal.memory import MemoryGameRepository, MemoryPlayerRepository, MemoryRoomRepository, MemoryStore
from shared.dal.models import Game, Player, Room
from shared.dal.player_repository import PlayerRepository
from shared.dal.room_repository import RoomRepository

__all__ = [
    "Game",
    "GameRepository",
    "MemoryGameRepository",
    "MemoryPlayerRepository",
    "MemoryRoomRepository",
    "MemoryStore",
    "Player",
    "PlayerRepository",
    "Room",
    "RoomRepository",
]
