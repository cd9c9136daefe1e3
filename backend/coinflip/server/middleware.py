"""ASGI middleware for the coin flip server."""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import structlog
from starlette.datastructures import Headers
from starlette.responses import JSONResponse

from coinflip.logic.enums import ErrorType
from coinflip.messaging.types import ErrorMessage
from coinflip.server.errors import http_error_body

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

    from coinflip.server.rate_limit import SlidingWindowLimiter

logger = structlog.get_logger()

SECURITY_HEADERS: list[tuple[bytes, bytes]] = [
    (b"x-content-type-options", b"nosniff"),
    (b"x-frame-options", b"DENY"),
    (b"referrer-policy", b"no-referrer"),
]

RATE_LIMITED_MESSAGE = "Too many requests, please try again later"


def resolve_client_ip(scope: Scope) -> str:
    """Client address: first X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    headers = Headers(scope=scope)
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    client = scope.get("client")
    return client[0] if client else "unknown"


class RateLimitMiddleware:
    """Reject HTTP requests under a path prefix once a client exceeds its window."""

    def __init__(self, app: ASGIApp, *, limiter: SlidingWindowLimiter, path_prefix: str = "/api/") -> None:
        self.app = app
        self._limiter = limiter
        self._path_prefix = path_prefix

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or not scope["path"].startswith(self._path_prefix):
            await self.app(scope, receive, send)
            return

        client_ip = resolve_client_ip(scope)
        if self._limiter.hit(client_ip):
            await self.app(scope, receive, send)
            return

        retry_after = math.ceil(self._limiter.retry_after(client_ip))
        logger.warning("http rate limit exceeded", client_ip=client_ip, path=scope["path"])
        response = JSONResponse(
            http_error_body(ErrorMessage(message=RATE_LIMITED_MESSAGE, error_type=ErrorType.RATE_LIMITED)),
            status_code=429,
            headers={"retry-after": str(retry_after)},
        )
        await response(scope, receive, send)


class SecurityHeadersMiddleware:
    """Inject standard security headers into every HTTP response."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async def send_with_headers(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.extend(SECURITY_HEADERS)
                message["headers"] = headers
            await send(message)

        await self.app(scope, receive, send_with_headers)
