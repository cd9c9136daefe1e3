"""Typed domain exceptions for the coin flip service.

Every failure a client can observe is a subclass of CoinflipError. Each class
carries its category tag, the HTTP status the REST boundary maps it to, and
whether it is an internal failure (broken invariant or storage fault) whose
detail must not reach clients outside debug mode. Boundaries catch
CoinflipError once and convert it to the error envelope.
"""

from typing import ClassVar

from coinflip.logic.enums import ErrorType


class CoinflipError(Exception):
    """Base class for all domain errors."""

    error_type: ClassVar[ErrorType] = ErrorType.INTERNAL_ERROR
    http_status: ClassVar[int] = 500
    internal: ClassVar[bool] = True


class RequestValidationError(CoinflipError):
    """Malformed or missing input at a boundary."""

    error_type = ErrorType.VALIDATION_ERROR
    http_status = 400
    internal = False


class RoomNotFound(CoinflipError):
    error_type = ErrorType.ROOM_NOT_FOUND
    http_status = 404
    internal = False

    def __init__(self, code: str | None = None) -> None:
        self.code = code
        super().__init__(f"Room with code '{code}' not found" if code else "Room not found")


class RoomFull(CoinflipError):
    error_type = ErrorType.ROOM_FULL
    http_status = 409
    internal = False

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Room '{code}' is already full")


class RoomNotReady(CoinflipError):
    """Flip requested for a room that is not full or completed."""

    error_type = ErrorType.ROOM_NOT_READY
    http_status = 409
    internal = False

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__("Room not found or not ready for game")


class MissingClientSeed(CoinflipError):
    error_type = ErrorType.MISSING_CLIENT_SEED
    http_status = 409
    internal = False

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__("Client seed not set - room not ready for play")


class ReplayNotReady(CoinflipError):
    error_type = ErrorType.REPLAY_NOT_READY
    http_status = 409
    internal = False

    def __init__(self, room_id: str) -> None:
        self.room_id = room_id
        super().__init__("Room is not ready for replay. Both players must be present.")


class InvalidGameState(CoinflipError):
    """Both players ended up on the same side."""

    error_type = ErrorType.INVALID_GAME_STATE

    def __init__(self, current_state: str, required_state: str) -> None:
        super().__init__(f"Invalid game state. Current: {current_state}, Required: {required_state}")


class InvalidPlayerCount(CoinflipError):
    error_type = ErrorType.INVALID_PLAYER_COUNT

    def __init__(self, room_id: str, count: int) -> None:
        self.room_id = room_id
        self.count = count
        super().__init__(f"Invalid player count for game: {count}")


class NoWinnerDetermined(CoinflipError):
    error_type = ErrorType.NO_WINNER_DETERMINED

    def __init__(self, room_id: str, result: str) -> None:
        self.room_id = room_id
        self.result = result
        super().__init__(f"Unable to determine winner for result '{result}'")


class PersistenceError(CoinflipError):
    """The store rejected a read or write."""

    error_type = ErrorType.PERSISTENCE_ERROR

    def __init__(self, operation: str, details: str | None = None) -> None:
        self.operation = operation
        self.details = details
        message = f"Database error during {operation}"
        super().__init__(f"{message}: {details}" if details else message)


class DuplicateRoomCodeError(PersistenceError):
    """A room with the same code already exists (uniqueness constraint)."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__("room creation", f"room code '{code}' already in use")


class RoomCreationExhausted(CoinflipError):
    error_type = ErrorType.ROOM_CREATION_EXHAUSTED

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Unable to generate unique room code after {attempts} attempts")
