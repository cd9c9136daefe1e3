"""
Room and game state machine.

Room lifecycle: waiting (creator only) -> full (joiner present, client seed set)
-> completed (flip resolved) -> full again on replay -> completed, looping.
The room is destroyed when its creator leaves.

Every mutation of a room runs under that room's asyncio.Lock, so nonce
increments and winner selection never interleave for the same room while
different rooms proceed independently.
"""

from __future__ import annotations

import asyncio
import secrets
import weakref
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog

from coinflip.logic import fairness
from coinflip.logic.enums import RoomStatus
from coinflip.logic.exceptions import (
    DuplicateRoomCodeError,
    InvalidGameState,
    InvalidPlayerCount,
    MissingClientSeed,
    NoWinnerDetermined,
    PersistenceError,
    RequestValidationError,
    RoomCreationExhausted,
    RoomFull,
    RoomNotFound,
    RoomNotReady,
)
from coinflip.logic.settings import PLAYERS_PER_ROOM, ROOM_CODE_ALPHABET, GameSettings
from coinflip.logic.types import FlipResult
from shared.dal.models import MAX_PLAYER_NAME_LENGTH, Game, Player, Room, default_player_name, utc_now

if TYPE_CHECKING:
    from coinflip.logic.enums import CoinSide
    from shared.dal import GameRepository, PlayerRepository, RoomRepository

logger = structlog.get_logger()


class CoinflipService:
    def __init__(
        self,
        rooms: RoomRepository,
        players: PlayerRepository,
        games: GameRepository,
        settings: GameSettings | None = None,
    ) -> None:
        self._rooms = rooms
        self._players = players
        self._games = games
        self._settings = settings or GameSettings()
        # room_id -> Lock, kept only while a holder or waiter references it
        self._room_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    @property
    def settings(self) -> GameSettings:
        return self._settings

    def _get_room_lock(self, room_id: str) -> asyncio.Lock:
        return self._room_locks.setdefault(room_id, asyncio.Lock())

    def _generate_room_code(self) -> str:
        return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(self._settings.room_code_length))

    @staticmethod
    def _resolve_name(display_name: str | None, connection_id: str) -> str:
        name = display_name.strip() if display_name else ""
        if not name:
            return default_player_name(connection_id)
        if len(name) > MAX_PLAYER_NAME_LENGTH:
            raise RequestValidationError(f"Player name must be at most {MAX_PLAYER_NAME_LENGTH} characters")
        return name

    # --- Room lifecycle ---

    async def create_room(self, side: CoinSide, display_name: str | None, connection_id: str) -> Room:
        """Create a room in `waiting` with the caller as its creator."""
        name = self._resolve_name(display_name, connection_id)
        room = await self._insert_room_with_unique_code(side)

        creator = Player(
            id=str(uuid4()),
            room_id=room.id,
            connection_id=connection_id,
            name=name,
            side=side,
            is_creator=True,
            stake_amount=self._settings.stake_amount,
            has_paid=True,
        )
        try:
            await self._players.create_player(creator)
        except PersistenceError as e:
            logger.exception("creator insert failed, rolling back room", room_id=room.id)
            await self._rooms.delete_room(room.id)
            raise PersistenceError("room creation", "failed to add creator") from e

        logger.info("room created", room_id=room.id, code=room.code, creator_side=side)
        return room

    async def _insert_room_with_unique_code(self, side: CoinSide) -> Room:
        """Draw codes until one is free.

        The lookup only avoids needless constraint violations; the storage
        UNIQUE(code) constraint is the real guarantee, and a rejection there
        counts as one more collision.
        """
        attempts = self._settings.max_code_attempts
        for attempt in range(1, attempts + 1):
            code = self._generate_room_code()
            if await self._rooms.get_room_by_code(code) is not None:
                logger.debug("room code collision", attempt=attempt)
                continue
            now = utc_now()
            room = Room(
                id=str(uuid4()),
                code=code,
                creator_side=side,
                stake_amount=self._settings.stake_amount,
                total_pot=self._settings.total_pot,
                status=RoomStatus.WAITING,
                server_seed=fairness.generate_server_seed(),
                client_seed=None,
                nonce=0,
                created_at=now,
                updated_at=now,
            )
            try:
                return await self._rooms.create_room(room)
            except DuplicateRoomCodeError:
                logger.debug("room code rejected by storage", attempt=attempt)
        logger.error("room code generation exhausted", attempts=attempts)
        raise RoomCreationExhausted(attempts)

    async def join_room(self, code: str, display_name: str | None, connection_id: str) -> tuple[Room, Player]:
        """Seat the second player on the side opposite the creator and mark the room full."""
        name = self._resolve_name(display_name, connection_id)
        room = await self._rooms.get_room_by_code(code, RoomStatus.WAITING)
        if room is None:
            raise RoomNotFound(code)

        async with self._get_room_lock(room.id):
            # Another join may have won the race while we waited for the lock.
            room = await self._rooms.get_room(room.id)
            if room is None or room.status != RoomStatus.WAITING:
                raise RoomNotFound(code)

            players = await self._players.get_players_by_room(room.id)
            if len(players) >= PLAYERS_PER_ROOM:
                raise RoomFull(code)

            side = room.creator_side.opposite
            if side == room.creator_side:
                logger.critical("joiner assigned creator's side", room_id=room.id, side=side)
                raise InvalidGameState(side, room.creator_side.opposite)

            player = Player(
                id=str(uuid4()),
                room_id=room.id,
                connection_id=connection_id,
                name=name,
                side=side,
                is_creator=False,
                stake_amount=self._settings.stake_amount,
                has_paid=True,
            )
            await self._players.create_player(player)

            updated = room.model_copy(
                update={
                    "client_seed": fairness.generate_client_seed(),
                    "status": RoomStatus.FULL,
                    "updated_at": utc_now(),
                },
            )
            try:
                room = await self._rooms.update_room(updated)
            except PersistenceError:
                logger.exception("room update failed after join, removing player", room_id=room.id)
                await self._players.delete_player(player.id)
                raise

        logger.info("player joined room", room_id=room.id, code=code, side=side)
        return room, player

    async def flip_coin(self, room_id: str) -> FlipResult:
        """Resolve one flip. A completed room is reset to full first (replay)."""
        async with self._get_room_lock(room_id):
            room = await self._rooms.get_room(room_id)
            if room is None or room.status not in (RoomStatus.FULL, RoomStatus.COMPLETED):
                raise RoomNotReady(room_id)

            if room.status == RoomStatus.COMPLETED:
                room = await self._rooms.update_room(
                    room.model_copy(update={"status": RoomStatus.FULL, "updated_at": utc_now()}),
                )
                logger.info("room reset for replay", room_id=room_id, nonce=room.nonce)

            if room.client_seed is None:
                raise MissingClientSeed(room_id)

            nonce = room.nonce + 1
            outcome = fairness.compute_result(room.server_seed, room.client_seed, nonce)

            players = await self._players.get_players_by_room(room_id)
            if len(players) != PLAYERS_PER_ROOM:
                logger.critical("flip with wrong player count", room_id=room_id, count=len(players))
                raise InvalidPlayerCount(room_id, len(players))

            winner = next((p for p in players if p.side == outcome.side), None)
            if winner is None:
                logger.critical("no player holds the winning side", room_id=room_id, result=outcome.side)
                raise NoWinnerDetermined(room_id, outcome.side)

            now = utc_now()
            # Advance the nonce before recording the game: a failed write may skip a
            # nonce but never leaves one behind that the next flip would reuse.
            room = await self._rooms.update_room(
                room.model_copy(update={"status": RoomStatus.COMPLETED, "nonce": nonce, "updated_at": now}),
            )
            try:
                game = await self._games.create_game(
                    Game(
                        id=str(uuid4()),
                        room_id=room_id,
                        flip_result=outcome.side,
                        winner_side=outcome.side,
                        winner_player_id=winner.id,
                        total_pot=room.total_pot,
                        server_seed=room.server_seed,
                        client_seed=room.client_seed,
                        nonce=nonce,
                        hash_result=outcome.hash,
                        is_verified=True,
                        created_at=now,
                        completed_at=now,
                    ),
                )
            except PersistenceError:
                logger.exception("game record failed after flip, reopening room", room_id=room_id, nonce=nonce)
                await self._rooms.update_room(
                    room.model_copy(update={"status": RoomStatus.FULL, "updated_at": utc_now()}),
                )
                raise

        logger.info("coin flipped", room_id=room_id, nonce=nonce, result=outcome.side, winner_id=winner.id)
        return FlipResult(
            result=outcome.side,
            winner_side=outcome.side,
            game=game,
            verification=fairness.build_verification_payload(
                room.server_seed,
                room.client_seed,
                nonce,
                self._settings.verification_base_url,
            ),
            winner_player=winner,
            room=room,
            players=players,
        )

    async def is_ready_for_replay(self, room_id: str) -> bool:
        room = await self._rooms.get_room(room_id)
        if room is None or room.status != RoomStatus.COMPLETED:
            return False
        players = await self._players.get_players_by_room(room_id)
        if len(players) != PLAYERS_PER_ROOM:
            return False
        creators = [p for p in players if p.is_creator]
        joiners = [p for p in players if not p.is_creator]
        if len(creators) != 1 or len(joiners) != 1:
            return False
        return creators[0].side == joiners[0].side.opposite

    async def remove_player(self, connection_id: str) -> list[Player]:
        """Remove every player bound to a connection.

        A creator leaving deletes the room (players and games cascade); a joiner
        leaving only removes that player. Returns the removed players.
        """
        removed = await self._players.get_players_by_connection(connection_id)
        for player in removed:
            async with self._get_room_lock(player.room_id):
                if player.is_creator:
                    await self._rooms.delete_room(player.room_id)
                    logger.info("creator left, room deleted", room_id=player.room_id)
                else:
                    await self._players.delete_player(player.id)
                    logger.info("player left room", room_id=player.room_id, player_id=player.id)
        return removed

    # --- Reads ---

    async def get_room(self, room_id: str) -> Room | None:
        return await self._rooms.get_room(room_id)

    async def get_room_by_code(self, code: str) -> Room | None:
        return await self._rooms.get_room_by_code(code)

    async def get_players(self, room_id: str) -> list[Player]:
        return await self._players.get_players_by_room(room_id)

    async def get_room_with_players(self, room_id: str) -> tuple[Room | None, list[Player]]:
        room = await self._rooms.get_room(room_id)
        if room is None:
            return None, []
        return room, await self._players.get_players_by_room(room_id)

    async def get_games(self, room_id: str) -> list[Game]:
        return await self._games.get_games_by_room(room_id)
