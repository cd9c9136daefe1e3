"""SQLite-backed room repository."""

from __future__ import annotations

import asyncio
import json
import sqlite3
from typing import TYPE_CHECKING

import structlog

from coinflip.logic.exceptions import DuplicateRoomCodeError, PersistenceError
from shared.dal.models import Room
from shared.dal.room_repository import RoomRepository

if TYPE_CHECKING:
    from coinflip.logic.enums import RoomStatus
    from shared.db.connection import Database

logger = structlog.get_logger()


class SqliteRoomRepository(RoomRepository):
    """SQLite implementation of RoomRepository.

    Relies on the UNIQUE(code) constraint rather than a check-then-insert,
    and maps IntegrityError on the code column to DuplicateRoomCodeError.
    """

    def __init__(self, db: Database) -> None:
        self._db = db
        self._lock = asyncio.Lock()

    async def create_room(self, room: Room) -> Room:
        async with self._lock:
            try:
                self._db.connection.execute(
                    "INSERT INTO rooms (id, code, status, data) VALUES (?, ?, ?, ?)",
                    (room.id, room.code, room.status.value, room.model_dump_json()),
                )
                self._db.connection.commit()
            except sqlite3.IntegrityError as exc:
                self._db.connection.rollback()
                if "rooms.code" in str(exc).lower():
                    raise DuplicateRoomCodeError(room.code) from exc
                raise PersistenceError("room creation", str(exc)) from exc
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError("room creation", str(exc)) from exc
        return room

    async def get_room(self, room_id: str) -> Room | None:
        try:
            row = self._db.connection.execute("SELECT data FROM rooms WHERE id = ?", (room_id,)).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError("room lookup", str(exc)) from exc
        if row is None:
            return None
        return Room.model_validate(json.loads(row[0]))

    async def get_room_by_code(self, code: str, status: RoomStatus | None = None) -> Room | None:
        query = "SELECT data FROM rooms WHERE code = ?"
        params: tuple[str, ...] = (code,)
        if status is not None:
            query += " AND status = ?"
            params = (code, status.value)
        try:
            row = self._db.connection.execute(query, params).fetchone()
        except sqlite3.Error as exc:
            raise PersistenceError("room lookup", str(exc)) from exc
        if row is None:
            return None
        return Room.model_validate(json.loads(row[0]))

    async def update_room(self, room: Room) -> Room:
        """Replace a stored room by id. The code column is never rewritten."""
        async with self._lock:
            try:
                cursor = self._db.connection.execute(
                    "UPDATE rooms SET status = ?, data = ? WHERE id = ? AND code = ?",
                    (room.status.value, room.model_dump_json(), room.id, room.code),
                )
                self._db.connection.commit()
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError("room update", str(exc)) from exc
        if cursor.rowcount == 0:
            raise PersistenceError("room update", f"room '{room.id}' not found")
        return room

    async def delete_room(self, room_id: str) -> bool:
        """Delete a room; players and games go with it via ON DELETE CASCADE."""
        async with self._lock:
            try:
                cursor = self._db.connection.execute("DELETE FROM rooms WHERE id = ?", (room_id,))
                self._db.connection.commit()
            except sqlite3.Error as exc:
                self._db.connection.rollback()
                raise PersistenceError("room deletion", str(exc)) from exc
        deleted = cursor.rowcount > 0
        if deleted:
            logger.debug("room deleted", room_id=room_id)
        return deleted
