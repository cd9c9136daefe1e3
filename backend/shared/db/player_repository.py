"""SQLite-backed player repository."""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from typing import TYPE_CHECKING

from coinflip.logic.exceptions import PersistenceError
from shared.dal.models import Player
from shared.dal.player_repository import PlayerRepository

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = logging.getLogger(__name__)


class SqlitePlayerRepository(PlayerRepository):
    """SQLite implementation of PlayerRepository.

    The room foreign key is enforced by SQLite (PRAGMA foreign_keys=ON), so
    inserting a player for a deleted room fails instead of leaving an orphan.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_player(self, player: Player) -> Player:
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO players (id, room_id, connection_id, is_creator, joined_at, data) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        player.id,
                        player.room_id,
                        player.connection_id,
                        int(player.is_creator),
                        player.joined_at.isoformat(),
                        player.model_dump_json(),
                    ),
                )
                self._db.connection.commit()
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError("player creation", str(exc)) from exc
        return player

    async def get_player(self, player_id: str) -> Player | None:
        rows = self._select("SELECT data FROM players WHERE id = ?", (player_id,))
        return rows[0] if rows else None

    async def get_players_by_connection(self, connection_id: str) -> list[Player]:
        return self._select(
            "SELECT data FROM players WHERE connection_id = ? ORDER BY joined_at ASC",
            (connection_id,),
        )

    async def get_players_by_room(self, room_id: str) -> list[Player]:
        return self._select(
            "SELECT data FROM players WHERE room_id = ? ORDER BY is_creator DESC, joined_at ASC",
            (room_id,),
        )

    async def delete_player(self, player_id: str) -> bool:
        async with self._lock:
            try:
                cursor = self._db.connection.execute("DELETE FROM players WHERE id = ?", (player_id,))
                self._db.connection.commit()
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError("player deletion", str(exc)) from exc
        return cursor.rowcount > 0

    def _select(self, query: str, params: tuple[str, ...]) -> list[Player]:
        try:
            rows = self._db.connection.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            logger.exception("player query failed")
            raise PersistenceError("player lookup", str(exc)) from exc
        return [Player.model_validate(json.loads(row[0])) for row in rows]
