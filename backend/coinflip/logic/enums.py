"""
String enum definitions for coin flip game concepts.
"""

from __future__ import annotations

from enum import StrEnum


class CoinSide(StrEnum):
    HEADS = "heads"
    TAILS = "tails"

    @property
    def opposite(self) -> CoinSide:
        return CoinSide.TAILS if self is CoinSide.HEADS else CoinSide.HEADS


class RoomStatus(StrEnum):
    """Room lifecycle states.

    PLAYING is accepted by storage for compatibility but never written:
    flip resolution holds the per-room lock instead of persisting a
    transitional state.
    """

    WAITING = "waiting"
    FULL = "full"
    PLAYING = "playing"
    COMPLETED = "completed"


class ErrorType(StrEnum):
    """Machine-readable category tags carried in every error envelope."""

    VALIDATION_ERROR = "validation_error"
    ROOM_NOT_FOUND = "room_not_found"
    ROOM_FULL = "room_full"
    ROOM_NOT_READY = "room_not_ready"
    MISSING_CLIENT_SEED = "missing_client_seed"
    REPLAY_NOT_READY = "replay_not_ready"
    INVALID_GAME_STATE = "invalid_game_state"
    INVALID_PLAYER_COUNT = "invalid_player_count"
    NO_WINNER_DETERMINED = "no_winner_determined"
    PERSISTENCE_ERROR = "persistence_error"
    ROOM_CREATION_EXHAUSTED = "room_creation_exhausted"
    RATE_LIMITED = "rate_limited"
    INTERNAL_ERROR = "internal_error"
