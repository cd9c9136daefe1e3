"""Persistence models for the data access layer."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from coinflip.logic.enums import CoinSide, RoomStatus

MAX_PLAYER_NAME_LENGTH = 50
_DEFAULT_NAME_PREFIX_CHARS = 4


def utc_now() -> datetime:
    return datetime.now(UTC)


def default_player_name(connection_id: str) -> str:
    """Display name used when a player joins without choosing one."""
    return f"Player {connection_id[:_DEFAULT_NAME_PREFIX_CHARS]}"


class Room(BaseModel, frozen=True):
    """A wagering session between a creator and at most one joiner."""

    id: str
    code: str
    creator_side: CoinSide
    stake_amount: float
    total_pot: float
    status: RoomStatus = RoomStatus.WAITING
    server_seed: str
    client_seed: str | None = None  # set once the second player joins
    nonce: int = 0  # number of resolved flips
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class Player(BaseModel, frozen=True):
    id: str
    room_id: str
    connection_id: str
    name: str = Field(max_length=MAX_PLAYER_NAME_LENGTH)
    side: CoinSide
    is_creator: bool = False
    stake_amount: float
    has_paid: bool = True  # payment is settled outside this service
    joined_at: datetime = Field(default_factory=utc_now)


class Game(BaseModel, frozen=True):
    """Immutable record of one resolved flip. Replays add new records."""

    id: str
    room_id: str
    flip_result: CoinSide
    winner_side: CoinSide  # always equal to flip_result; kept for record compatibility
    winner_player_id: str
    total_pot: float
    server_seed: str
    client_seed: str
    nonce: int
    hash_result: str
    is_verified: bool = True
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None
