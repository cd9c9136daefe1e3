from __future__ import annotations

import contextlib
import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from pydantic import TypeAdapter, ValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Route, WebSocketRoute

from coinflip.logic import fairness
from coinflip.logic.exceptions import RequestValidationError, RoomNotFound
from coinflip.logic.service import CoinflipService
from coinflip.logic.settings import GameSettings
from coinflip.messaging.errors import describe_validation_error
from coinflip.messaging.router import MessageRouter
from coinflip.messaging.types import RoomCode, RoomView, player_views
from coinflip.server.errors import json_endpoint
from coinflip.server.middleware import RateLimitMiddleware, SecurityHeadersMiddleware
from coinflip.server.rate_limit import SlidingWindowLimiter
from coinflip.server.settings import ServerSettings
from coinflip.server.types import CreateRoomRequest, VerifyRequest
from coinflip.server.websocket import websocket_endpoint
from coinflip.session.manager import SessionManager
from coinflip.session.timer_manager import TimerManager
from coinflip.session.types import SessionConfig
from shared.dal import MemoryGameRepository, MemoryPlayerRepository, MemoryRoomRepository, MemoryStore
from shared.db import Database, SqliteGameRepository, SqlitePlayerRepository, SqliteRoomRepository
from shared.logging import setup_logging

logger = structlog.get_logger()

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket

    from coinflip.session.timer_manager import Clock
    from shared.dal.models import Room

SERVICE_NAME = "coinflip-game-backend"

_MAX_REQUEST_BODY_SIZE = 4096

_room_code_adapter = TypeAdapter(RoomCode)


async def health(_request: Request) -> JSONResponse:
    return JSONResponse(
        {"status": "ok", "timestamp": datetime.now(UTC).isoformat(), "service": SERVICE_NAME},
    )


async def _read_json(request: Request) -> object:
    raw_body = await request.body()
    if len(raw_body) > _MAX_REQUEST_BODY_SIZE:
        raise RequestValidationError("Request body too large")
    try:
        return json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise RequestValidationError("Request body must be valid JSON") from e


async def _room_from_path(request: Request) -> Room:
    service: CoinflipService = request.app.state.service
    try:
        code = _room_code_adapter.validate_python(request.path_params["code"])
    except ValidationError as e:
        raise RequestValidationError("Room code must be alphanumeric") from e
    room = await service.get_room_by_code(code)
    if room is None:
        raise RoomNotFound(code)
    return room


def _room_view(request: Request, room: Room) -> dict:
    settings: ServerSettings = request.app.state.settings
    return RoomView.from_room(room, reveal_server_seed=settings.reveal_server_seed).model_dump(mode="json")


@json_endpoint
async def create_room(request: Request) -> JSONResponse:
    """Create a room over REST. The creator is bound to a one-off placeholder connection id;
    real-time play (auto-start, results) needs the WebSocket."""
    service: CoinflipService = request.app.state.service
    try:
        body = CreateRoomRequest.model_validate(await _read_json(request))
    except ValidationError as e:
        raise RequestValidationError(describe_validation_error(e)) from e

    room = await service.create_room(body.side, body.player_name, f"rest-{uuid4()}")
    return JSONResponse(
        {
            **_room_view(request, room),
            "player_side": body.side.value,
            "stake_amount": room.stake_amount,
            "total_pot": room.total_pot,
        },
        status_code=201,
    )


@json_endpoint
async def get_room(request: Request) -> JSONResponse:
    service: CoinflipService = request.app.state.service
    room = await _room_from_path(request)
    players = await service.get_players(room.id)
    return JSONResponse(
        {
            "room": _room_view(request, room),
            "players": [p.model_dump(mode="json") for p in player_views(players)],
        },
    )


@json_endpoint
async def get_room_players(request: Request) -> JSONResponse:
    service: CoinflipService = request.app.state.service
    room = await _room_from_path(request)
    players = await service.get_players(room.id)
    return JSONResponse({"players": [p.model_dump(mode="json") for p in player_views(players)]})


@json_endpoint
async def get_room_games(request: Request) -> JSONResponse:
    """Flip history of a room, oldest first. Every record carries its revealed seeds."""
    service: CoinflipService = request.app.state.service
    room = await _room_from_path(request)
    games = await service.get_games(room.id)
    return JSONResponse({"games": [g.model_dump(mode="json") for g in games]})


@json_endpoint
async def verify_flip(request: Request) -> JSONResponse:
    try:
        body = VerifyRequest.model_validate(await _read_json(request))
    except ValidationError as e:
        raise RequestValidationError(describe_validation_error(e)) from e
    valid = fairness.verify(body.server_seed, body.client_seed, body.nonce, body.hash, body.side)
    return JSONResponse({"valid": valid})


def _build_service(settings: ServerSettings, game_settings: GameSettings) -> tuple[CoinflipService, Database | None]:
    """Wire the service to the configured storage backend. Returns the owned database, if any."""
    if settings.storage_backend == "memory":
        store = MemoryStore()
        service = CoinflipService(
            MemoryRoomRepository(store),
            MemoryPlayerRepository(store),
            MemoryGameRepository(store),
            game_settings,
        )
        return service, None

    db = Database(settings.database_path)
    db.connect()
    service = CoinflipService(
        SqliteRoomRepository(db),
        SqlitePlayerRepository(db),
        SqliteGameRepository(db),
        game_settings,
    )
    return service, db


def create_app(
    settings: ServerSettings | None = None,
    service: CoinflipService | None = None,
    session_manager: SessionManager | None = None,
    clock: Clock | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ServerSettings()

    # When the app builds its own service, it owns the DB lifecycle.
    owned_db: Database | None = None
    if service is None:
        service, owned_db = _build_service(settings, GameSettings())

    if session_manager is None:
        session_manager = SessionManager(
            service,
            timer_manager=TimerManager(clock),
            config=SessionConfig.from_settings(settings),
        )

    message_router = MessageRouter(session_manager)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, message_router, settings)

    routes = [
        Route("/health", health, methods=["GET"]),
        Route("/api/game/health", health, methods=["GET"]),
        Route("/api/game/rooms", create_room, methods=["POST"]),
        Route("/api/game/rooms/{code}", get_room, methods=["GET"]),
        Route("/api/game/rooms/{code}/players", get_room_players, methods=["GET"]),
        Route("/api/game/rooms/{code}/games", get_room_games, methods=["GET"]),
        Route("/api/game/verify", verify_flip, methods=["POST"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        session_manager.shutdown()
        if owned_db is not None:
            owned_db.close()

    limiter = SlidingWindowLimiter(settings.http_rate_limit_requests, settings.http_rate_limit_window_seconds)
    middleware = [
        Middleware(SecurityHeadersMiddleware),
        Middleware(
            CORSMiddleware,
            allow_origins=settings.cors_origins,
            allow_methods=["GET", "POST"],
            allow_headers=["Content-Type"],
        ),
        Middleware(RateLimitMiddleware, limiter=limiter),
    ]

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service
    app.state.session_manager = session_manager

    logger.info("coinflip server ready", storage_backend=settings.storage_backend)
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (e.g., uvicorn --factory)."""
    settings = ServerSettings()
    setup_logging(settings.log_dir)
    return create_app(settings=settings)
