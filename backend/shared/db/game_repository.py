"""SQLite-backed flip record repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from typing import TYPE_CHECKING

import structlog

from coinflip.logic.exceptions import PersistenceError
from shared.dal.game_repository import GameRepository
from shared.dal.models import Game

if TYPE_CHECKING:
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteGameRepository(GameRepository):
    """SQLite implementation of GameRepository.

    Stores full records as JSON with indexed columns for queries. The
    UNIQUE(room_id, nonce) constraint is the final guard against two flips
    sharing a nonce.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_game(self, game: Game) -> Game:
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO games (id, room_id, nonce, winner_player_id, created_at, data) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (
                        game.id,
                        game.room_id,
                        game.nonce,
                        game.winner_player_id,
                        game.created_at.isoformat(),
                        game.model_dump_json(),
                    ),
                )
                self._db.connection.commit()
            except sqlite3.IntegrityError as exc:
                self._db.connection.rollback()
                logger.error("flip record rejected", room_id=game.room_id, nonce=game.nonce, error=str(exc))
                raise PersistenceError("game creation", str(exc)) from exc
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError("game creation", str(exc)) from exc
        return game

    async def get_game(self, game_id: str) -> Game | None:
        try:
            row = self._db.connection.execute("SELECT data FROM games WHERE id = ?", (game_id,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError("game lookup", str(exc)) from exc
        if row is None:
            return None
        return Game.model_validate(json.loads(row[0]))

    async def get_games_by_room(self, room_id: str) -> list[Game]:
        try:
            rows = self._db.connection.execute(
                "SELECT data FROM games WHERE room_id = ? ORDER BY nonce ASC",
                (room_id,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise PersistenceError("game lookup", str(exc)) from exc
        return [Game.model_validate(json.loads(row[0])) for row in rows]
