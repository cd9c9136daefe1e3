from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from coinflip.logic.enums import RoomStatus
from coinflip.logic.exceptions import ReplayNotReady, RoomNotFound, RoomNotReady
from coinflip.messaging.errors import to_error_message
from coinflip.messaging.types import (
    CoinFlipResultMessage,
    CoinFlipStartedMessage,
    GameCompletedMessage,
    GameOutcome,
    PlayerView,
    PongMessage,
    RoomCreatedMessage,
    RoomJoinedMessage,
    RoomReadyMessage,
    RoomStatusMessage,
    RoomView,
    player_views,
)
from coinflip.session.channels import RoomChannels
from coinflip.session.timer_manager import TimerManager
from coinflip.session.types import SessionConfig

if TYPE_CHECKING:
    from coinflip.logic.enums import CoinSide
    from coinflip.logic.service import CoinflipService
    from coinflip.logic.types import FlipResult
    from coinflip.messaging.protocol import ConnectionProtocol
    from shared.dal.models import Room

logger = structlog.get_logger()

ROOM_READY_MESSAGE = "Both players ready! Game can start."
REPLAY_READY_MESSAGE = "Both players ready! Starting new coin flip!"


class SessionManager:
    """Bridge live connections to the coin flip service.

    Direct requests answer the requesting connection with exactly one
    success message or one error. Flip sequences run later on the timer
    manager; their failures are broadcast to the whole room, since every
    player there is waiting on the outcome.
    """

    def __init__(
        self,
        service: CoinflipService,
        timer_manager: TimerManager | None = None,
        config: SessionConfig | None = None,
    ) -> None:
        self._service = service
        self._timers = timer_manager or TimerManager()
        self._config = config or SessionConfig()
        self._channels = RoomChannels()
        self._connections: dict[str, ConnectionProtocol] = {}

    @property
    def channels(self) -> RoomChannels:
        return self._channels

    @property
    def timer_manager(self) -> TimerManager:
        return self._timers

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def register_connection(self, connection: ConnectionProtocol) -> None:
        self._connections[connection.connection_id] = connection

    def shutdown(self) -> None:
        self._timers.cancel_all()

    def _room_view(self, room: Room) -> RoomView:
        return RoomView.from_room(room, reveal_server_seed=self._config.reveal_server_seed)

    async def _send_error(self, connection: ConnectionProtocol, exc: BaseException) -> None:
        await connection.send_message(to_error_message(exc, debug=self._config.debug))

    async def _broadcast_error(self, room_id: str, exc: BaseException) -> None:
        await self._channels.broadcast(room_id, to_error_message(exc, debug=self._config.debug))

    # --- Direct requests ---

    async def create_room(self, connection: ConnectionProtocol, side: CoinSide, player_name: str | None) -> None:
        structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
        try:
            room = await self._service.create_room(side, player_name, connection.connection_id)
            players = await self._service.get_players(room.id)
        except Exception as e:
            await self._send_error(connection, e)
            return

        structlog.contextvars.bind_contextvars(room_id=room.id)
        self._channels.subscribe(room.id, connection)
        await connection.send_message(
            RoomCreatedMessage(
                room=self._room_view(room),
                player_side=side,
                players=player_views(players),
                stake_amount=room.stake_amount,
                total_pot=room.total_pot,
            ),
        )

    async def join_room(self, connection: ConnectionProtocol, code: str, player_name: str | None) -> None:
        """Seat the joiner, announce the full room, and schedule the automatic first flip."""
        structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
        try:
            room, player = await self._service.join_room(code, player_name, connection.connection_id)
            players = await self._service.get_players(room.id)
        except Exception as e:
            await self._send_error(connection, e)
            return

        structlog.contextvars.bind_contextvars(room_id=room.id)
        self._channels.subscribe(room.id, connection)
        room_view = self._room_view(room)
        views = player_views(players)
        await self._channels.broadcast(
            room.id,
            RoomReadyMessage(room=room_view, players=views, message=ROOM_READY_MESSAGE),
        )
        await connection.send_message(
            RoomJoinedMessage(
                room=room_view,
                player_side=player.side,
                players=views,
                stake_amount=room.stake_amount,
                total_pot=room.total_pot,
            ),
        )

        room_id = room.id
        self._timers.schedule(
            room_id,
            self._config.auto_start_delay_seconds,
            lambda: self._run_flip_sequence(room_id, is_replay=False),
        )
        logger.info("auto-start scheduled", delay=self._config.auto_start_delay_seconds)

    async def request_flip(self, connection: ConnectionProtocol, room_id: str) -> None:
        """Handle a manual flip request; a completed room is replayed after a readiness check."""
        structlog.contextvars.bind_contextvars(connection_id=connection.connection_id, room_id=room_id)
        try:
            room = await self._service.get_room(room_id)
            if room is None or room.status not in (RoomStatus.FULL, RoomStatus.COMPLETED):
                raise RoomNotReady(room_id)
            is_replay = room.status == RoomStatus.COMPLETED
            if is_replay:
                if not await self._service.is_ready_for_replay(room_id):
                    raise ReplayNotReady(room_id)
                players = await self._service.get_players(room_id)
        except Exception as e:
            await self._send_error(connection, e)
            return

        delay = 0.0
        if is_replay:
            # Shown as full so clients reset their board before the next flip.
            ready_view = self._room_view(room.model_copy(update={"status": RoomStatus.FULL}))
            await self._channels.broadcast(
                room_id,
                RoomReadyMessage(
                    room=ready_view,
                    players=player_views(players),
                    message=REPLAY_READY_MESSAGE,
                    is_replay=True,
                ),
            )
            delay = self._config.replay_delay_seconds

        self._timers.schedule(room_id, delay, lambda: self._run_flip_sequence(room_id, is_replay=is_replay))
        logger.info("manual flip scheduled", is_replay=is_replay)

    async def get_room_status(self, connection: ConnectionProtocol, code: str) -> None:
        structlog.contextvars.bind_contextvars(connection_id=connection.connection_id)
        try:
            room = await self._service.get_room_by_code(code)
            if room is None:
                raise RoomNotFound(code)
            players = await self._service.get_players(room.id)
        except Exception as e:
            await self._send_error(connection, e)
            return
        await connection.send_message(RoomStatusMessage(room=self._room_view(room), players=player_views(players)))

    async def handle_ping(self, connection: ConnectionProtocol) -> None:
        await connection.send_message(PongMessage())

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        """Remove the connection's players. Cleanup errors are logged, never raised."""
        connection_id = connection.connection_id
        self._connections.pop(connection_id, None)
        self._channels.unsubscribe(connection_id)
        try:
            removed = await self._service.remove_player(connection_id)
        except Exception:
            logger.exception("player cleanup failed on disconnect", connection_id=connection_id)
            return
        for player in removed:
            if player.is_creator:
                self._channels.drop_room(player.room_id)

    # --- Scheduled flip sequence ---

    async def _run_flip_sequence(self, room_id: str, *, is_replay: bool) -> None:
        """Announce the flip, wait out the animation, resolve, then publish results.

        Runs whether or not anyone is still subscribed; broadcasting to an
        empty room is a no-op.
        """
        structlog.contextvars.bind_contextvars(room_id=room_id)
        await self._channels.broadcast(room_id, CoinFlipStartedMessage(is_replay=is_replay))
        await self._timers.sleep(self._config.flip_animation_seconds)
        try:
            result = await self._service.flip_coin(room_id)
        except Exception as e:
            await self._broadcast_error(room_id, e)
            return
        await self._publish_result(room_id, result)

    async def _publish_result(self, room_id: str, result: FlipResult) -> None:
        views = player_views(result.players)
        await self._channels.broadcast(
            room_id,
            CoinFlipResultMessage(
                flip_result=result.result,
                winner_side=result.winner_side,
                winner_player=PlayerView.from_player(result.winner_player),
                total_pot=result.game.total_pot,
                players=views,
                game=result.game,
                verification=result.verification,
            ),
        )
        for player in result.players:
            is_winner = player.id == result.winner_player.id
            await self._channels.send_to(
                player.connection_id,
                GameCompletedMessage(
                    result=GameOutcome.WIN if is_winner else GameOutcome.LOSE,
                    flip_result=result.result,
                    your_side=player.side,
                    winner_side=result.winner_side,
                    winnings=result.game.total_pot if is_winner else 0.0,
                    players=views,
                    verification=result.verification,
                    game=result.game,
                ),
            )
