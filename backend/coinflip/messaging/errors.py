"""Conversion of exceptions to the client-facing error envelope."""

import structlog
from pydantic import ValidationError

from coinflip.logic.enums import ErrorType
from coinflip.logic.exceptions import CoinflipError
from coinflip.messaging.types import ErrorMessage

logger = structlog.get_logger()

INTERNAL_ERROR_MESSAGE = "Internal server error"


def is_internal(exc: BaseException) -> bool:
    """Unexpected exceptions count as internal; so do invariant and storage failures."""
    return not isinstance(exc, CoinflipError) or exc.internal


def http_status_for(exc: BaseException) -> int:
    return exc.http_status if isinstance(exc, CoinflipError) else 500


def to_error_message(exc: BaseException, *, debug: bool = False) -> ErrorMessage:
    """Build the error envelope for an exception, logging it at a matching level.

    Internal failures are reported as a generic internal error unless debug is on,
    so storage text and invariant details never reach clients in production.
    """
    if isinstance(exc, CoinflipError) and not exc.internal:
        logger.info("request rejected", error_type=exc.error_type, reason=str(exc))
        return ErrorMessage(message=str(exc), error_type=exc.error_type)

    logger.error("internal error", exc_info=exc)
    if not debug:
        return ErrorMessage(message=INTERNAL_ERROR_MESSAGE, error_type=ErrorType.INTERNAL_ERROR)
    error_type = exc.error_type if isinstance(exc, CoinflipError) else ErrorType.INTERNAL_ERROR
    return ErrorMessage(message=str(exc) or type(exc).__name__, error_type=error_type)


def describe_validation_error(error: ValidationError) -> str:
    """One-line summary of the first validation failure, e.g. `side: Input should be 'heads' or 'tails'`."""
    first = error.errors()[0]
    location = ".".join(str(part) for part in first["loc"])
    return f"{location}: {first['msg']}" if location else first["msg"]
