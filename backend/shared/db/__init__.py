"""SQLite database layer: connection management and repository implementations."""

from shared.db.connection import Database
from shared.db.game_repository import SqliteGameRepository
from shared.db.player_repository import SqlitePlayerRepository
from shared.db.room_repository import SqliteRoomRepository

__all__ = [
    "Database",
    "SqliteGameRepository",
    "SqlitePlayerRepository",
    "SqliteRoomRepository",
]
