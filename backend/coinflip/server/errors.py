"""HTTP rendering of the error envelope."""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING

from starlette.responses import JSONResponse

from coinflip.messaging.errors import http_status_for, to_error_message

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from starlette.requests import Request

    from coinflip.messaging.types import ErrorMessage

    Endpoint = Callable[[Request], Awaitable[JSONResponse]]


def http_error_body(message: ErrorMessage) -> dict[str, str]:
    """HTTP form of the envelope. The category tag goes under `type`, which a WebSocket
    frame already spends on its own discriminator."""
    return {"message": message.message, "type": message.error_type.value}


def error_response(exc: BaseException, *, debug: bool = False) -> JSONResponse:
    """Render `{message, type}` with the status code mapped from the exception."""
    body = http_error_body(to_error_message(exc, debug=debug))
    return JSONResponse(body, status_code=http_status_for(exc))


def json_endpoint(handler: Endpoint) -> Endpoint:
    """Convert any exception escaping a JSON route into the error envelope."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> JSONResponse:
        try:
            return await handler(request)
        except Exception as exc:
            return error_response(exc, debug=request.app.state.settings.debug)

    return wrapper
