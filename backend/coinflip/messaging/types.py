from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal, Self

from pydantic import AfterValidator, BaseModel, Field, TypeAdapter

from coinflip.logic.enums import CoinSide, ErrorType, RoomStatus
from coinflip.logic.fairness import VerificationPayload, hash_server_seed
from shared.dal.models import MAX_PLAYER_NAME_LENGTH, Game, Player, Room

# ASCII control character boundaries for input validation
_SPACE_ORD = 0x20
_DEL_ORD = 0x7F


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    FLIP_COIN = "flip_coin"
    GET_ROOM_STATUS = "get_room_status"
    PING = "ping"


class ServerMessageType(StrEnum):
    ROOM_CREATED = "room_created"
    ROOM_READY = "room_ready"
    ROOM_JOINED = "room_joined"
    COIN_FLIP_STARTED = "coin_flip_started"
    COIN_FLIP_RESULT = "coin_flip_result"
    GAME_COMPLETED = "game_completed"
    ROOM_STATUS = "room_status"
    ERROR = "error"
    PONG = "pong"


class GameOutcome(StrEnum):
    WIN = "win"
    LOSE = "lose"


def _check_player_name(value: str) -> str | None:
    """Reject control characters; a blank name falls back to the default later."""
    if any(ord(c) < _SPACE_ORD or ord(c) == _DEL_ORD for c in value):
        raise ValueError("player_name must not contain control characters")
    return value.strip() or None


def _normalize_room_code(value: str) -> str:
    return value.upper()


PlayerName = Annotated[
    str,
    Field(min_length=1, max_length=MAX_PLAYER_NAME_LENGTH),
    AfterValidator(_check_player_name),
]
RoomCode = Annotated[str, Field(pattern=r"^[A-Za-z0-9]{4,12}$"), AfterValidator(_normalize_room_code)]


# --- Client -> server ---


class CreateRoomMessage(BaseModel):
    type: Literal[ClientMessageType.CREATE_ROOM] = ClientMessageType.CREATE_ROOM
    side: CoinSide
    player_name: PlayerName | None = None


class JoinRoomMessage(BaseModel):
    type: Literal[ClientMessageType.JOIN_ROOM] = ClientMessageType.JOIN_ROOM
    code: RoomCode
    player_name: PlayerName | None = None


class FlipCoinMessage(BaseModel):
    type: Literal[ClientMessageType.FLIP_COIN] = ClientMessageType.FLIP_COIN
    room_id: str = Field(min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9-]+$")


class GetRoomStatusMessage(BaseModel):
    type: Literal[ClientMessageType.GET_ROOM_STATUS] = ClientMessageType.GET_ROOM_STATUS
    code: RoomCode


class PingMessage(BaseModel):
    type: Literal[ClientMessageType.PING] = ClientMessageType.PING


ClientMessage = Annotated[
    CreateRoomMessage | JoinRoomMessage | FlipCoinMessage | GetRoomStatusMessage | PingMessage,
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Parse a raw dict into a typed ClientMessage. Raises pydantic ValidationError."""
    return _client_message_adapter.validate_python(data)


# --- Public views of persisted records ---


class RoomView(BaseModel):
    """Room as shown to clients.

    The raw server seed stays hidden until a flip reveals it in the
    verification payload; only its SHA-256 commitment is published.
    """

    id: str
    code: str
    creator_side: CoinSide
    stake_amount: float
    total_pot: float
    status: RoomStatus
    server_seed_hash: str
    server_seed: str | None = None
    client_seed: str | None = None
    nonce: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_room(cls, room: Room, *, reveal_server_seed: bool = False) -> Self:
        return cls(
            id=room.id,
            code=room.code,
            creator_side=room.creator_side,
            stake_amount=room.stake_amount,
            total_pot=room.total_pot,
            status=room.status,
            server_seed_hash=hash_server_seed(room.server_seed),
            server_seed=room.server_seed if reveal_server_seed else None,
            client_seed=room.client_seed,
            nonce=room.nonce,
            created_at=room.created_at,
            updated_at=room.updated_at,
        )


class PlayerView(BaseModel):
    id: str
    room_id: str
    name: str
    side: CoinSide
    is_creator: bool
    stake_amount: float
    has_paid: bool
    joined_at: datetime

    @classmethod
    def from_player(cls, player: Player) -> Self:
        return cls.model_validate(player.model_dump(exclude={"connection_id"}))


def player_views(players: list[Player]) -> list[PlayerView]:
    return [PlayerView.from_player(p) for p in players]


# --- Server -> client ---


class RoomCreatedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_CREATED] = ServerMessageType.ROOM_CREATED
    room: RoomView
    player_side: CoinSide
    players: list[PlayerView]
    stake_amount: float
    total_pot: float


class RoomJoinedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_JOINED] = ServerMessageType.ROOM_JOINED
    room: RoomView
    player_side: CoinSide
    players: list[PlayerView]
    stake_amount: float
    total_pot: float


class RoomReadyMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_READY] = ServerMessageType.ROOM_READY
    room: RoomView
    players: list[PlayerView]
    message: str
    is_replay: bool = False


class CoinFlipStartedMessage(BaseModel):
    type: Literal[ServerMessageType.COIN_FLIP_STARTED] = ServerMessageType.COIN_FLIP_STARTED
    message: str = "Coin flip starting..."
    is_replay: bool = False


class CoinFlipResultMessage(BaseModel):
    type: Literal[ServerMessageType.COIN_FLIP_RESULT] = ServerMessageType.COIN_FLIP_RESULT
    flip_result: CoinSide
    winner_side: CoinSide
    winner_player: PlayerView
    total_pot: float
    players: list[PlayerView]
    game: Game
    verification: VerificationPayload


class GameCompletedMessage(BaseModel):
    """Personalized outcome sent to each player's own connection."""

    type: Literal[ServerMessageType.GAME_COMPLETED] = ServerMessageType.GAME_COMPLETED
    result: GameOutcome
    flip_result: CoinSide
    your_side: CoinSide
    winner_side: CoinSide
    winnings: float
    players: list[PlayerView]
    verification: VerificationPayload
    game: Game


class RoomStatusMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_STATUS] = ServerMessageType.ROOM_STATUS
    room: RoomView
    players: list[PlayerView]


class ErrorMessage(BaseModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    message: str
    error_type: ErrorType


class PongMessage(BaseModel):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG
