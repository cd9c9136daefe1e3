"""In-memory repository implementations for tests and single-process deployments.

All three repositories share one MemoryStore: an arena of records keyed by id,
plus secondary indexes by room code and connection id. Methods never await
between reading and writing the arena, so each call is atomic on the event loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from coinflip.logic.exceptions import DuplicateRoomCodeError, PersistenceError
from shared.dal.game_repository import GameRepository
from shared.dal.player_repository import PlayerRepository
from shared.dal.room_repository import RoomRepository

if TYPE_CHECKING:
    from coinflip.logic.enums import RoomStatus
    from shared.dal.models import Game, Player, Room

logger = structlog.get_logger()


class MemoryStore:
    """Shared arena enforcing the same constraints as the SQLite schema."""

    def __init__(self) -> None:
        self.rooms: dict[str, Room] = {}
        self.players: dict[str, Player] = {}
        self.games: dict[str, Game] = {}
        self.room_ids_by_code: dict[str, str] = {}
        self.player_ids_by_connection: dict[str, list[str]] = {}

    def cascade_delete_room(self, room_id: str) -> bool:
        room = self.rooms.pop(room_id, None)
        if room is None:
            return False
        self.room_ids_by_code.pop(room.code, None)
        for player in [p for p in self.players.values() if p.room_id == room_id]:
            self.remove_player(player.id)
        for game_id in [g.id for g in self.games.values() if g.room_id == room_id]:
            del self.games[game_id]
        return True

    def remove_player(self, player_id: str) -> bool:
        player = self.players.pop(player_id, None)
        if player is None:
            return False
        ids = self.player_ids_by_connection.get(player.connection_id, [])
        if player_id in ids:
            ids.remove(player_id)
        if not ids:
            self.player_ids_by_connection.pop(player.connection_id, None)
        return True


class MemoryRoomRepository(RoomRepository):
    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    async def create_room(self, room: Room) -> Room:
        if room.id in self._store.rooms:
            raise PersistenceError("room creation", f"room '{room.id}' already exists")
        if room.code in self._store.room_ids_by_code:
            raise DuplicateRoomCodeError(room.code)
        self._store.rooms[room.id] = room
        self._store.room_ids_by_code[room.code] = room.id
        return room

    async def get_room(self, room_id: str) -> Room | None:
        return self._store.rooms.get(room_id)

    async def get_room_by_code(self, code: str, status: RoomStatus | None = None) -> Room | None:
        room_id = self._store.room_ids_by_code.get(code)
        if room_id is None:
            return None
        room = self._store.rooms[room_id]
        if status is not None and room.status != status:
            return None
        return room

    async def update_room(self, room: Room) -> Room:
        existing = self._store.rooms.get(room.id)
        if existing is None:
            raise PersistenceError("room update", f"room '{room.id}' not found")
        if existing.code != room.code:
            raise PersistenceError("room update", "room code is immutable")
        self._store.rooms[room.id] = room
        return room

    async def delete_room(self, room_id: str) -> bool:
        return self._store.cascade_delete_room(room_id)


class MemoryPlayerRepository(PlayerRepository):
    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    async def create_player(self, player: Player) -> Player:
        if player.room_id not in self._store.rooms:
            raise PersistenceError("player creation", f"room '{player.room_id}' does not exist")
        if player.id in self._store.players:
            raise PersistenceError("player creation", f"player '{player.id}' already exists")
        self._store.players[player.id] = player
        self._store.player_ids_by_connection.setdefault(player.connection_id, []).append(player.id)
        return player

    async def get_player(self, player_id: str) -> Player | None:
        return self._store.players.get(player_id)

    async def get_players_by_connection(self, connection_id: str) -> list[Player]:
        ids = self._store.player_ids_by_connection.get(connection_id, [])
        return [self._store.players[player_id] for player_id in ids]

    async def get_players_by_room(self, room_id: str) -> list[Player]:
        players = [p for p in self._store.players.values() if p.room_id == room_id]
        return sorted(players, key=lambda p: (not p.is_creator, p.joined_at))

    async def delete_player(self, player_id: str) -> bool:
        return self._store.remove_player(player_id)


class MemoryGameRepository(GameRepository):
    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    async def create_game(self, game: Game) -> Game:
        if game.room_id not in self._store.rooms:
            raise PersistenceError("game creation", f"room '{game.room_id}' does not exist")
        if game.id in self._store.games:
            raise PersistenceError("game creation", f"game '{game.id}' already exists")
        if any(g.room_id == game.room_id and g.nonce == game.nonce for g in self._store.games.values()):
            logger.error("duplicate nonce rejected", room_id=game.room_id, nonce=game.nonce)
            raise PersistenceError("game creation", f"nonce {game.nonce} already used in room")
        self._store.games[game.id] = game
        return game

    async def get_game(self, game_id: str) -> Game | None:
        return self._store.games.get(game_id)

    async def get_games_by_room(self, room_id: str) -> list[Game]:
        return sorted((g for g in self._store.games.values() if g.room_id == room_id), key=lambda g: g.nonce)
