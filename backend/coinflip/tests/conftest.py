from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from coinflip.logic.enums import CoinSide
from coinflip.logic.service import CoinflipService
from coinflip.logic.settings import GameSettings
from coinflip.messaging.router import MessageRouter
from coinflip.session.manager import SessionManager
from coinflip.session.timer_manager import TimerManager
from coinflip.session.types import SessionConfig
from coinflip.tests.mocks import MockConnection, VirtualClock
from shared.dal import MemoryGameRepository, MemoryPlayerRepository, MemoryRoomRepository, MemoryStore

if TYPE_CHECKING:
    from shared.dal.models import Player, Room


# ============================================================================
# Service Builders
# ============================================================================


def create_service(
    store: MemoryStore | None = None,
    settings: GameSettings | None = None,
) -> CoinflipService:
    store = store or MemoryStore()
    return CoinflipService(
        MemoryRoomRepository(store),
        MemoryPlayerRepository(store),
        MemoryGameRepository(store),
        settings or GameSettings(),
    )


async def create_full_room(
    service: CoinflipService,
    creator_side: CoinSide = CoinSide.HEADS,
    creator_connection: str = "conn-creator",
    joiner_connection: str = "conn-joiner",
) -> tuple[Room, Player]:
    """Create a room and seat a second player. Returns the full room and the joiner."""
    room = await service.create_room(creator_side, "Alice", creator_connection)
    return await service.join_room(room.code, "Bob", joiner_connection)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def service(store: MemoryStore) -> CoinflipService:
    return create_service(store)


@pytest.fixture
def clock() -> VirtualClock:
    return VirtualClock()


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(auto_start_delay_seconds=2.0, flip_animation_seconds=3.0, replay_delay_seconds=1.0)


@pytest.fixture
async def session_manager(service, clock, session_config):
    manager = SessionManager(service, timer_manager=TimerManager(clock), config=session_config)
    yield manager
    manager.shutdown()


@pytest.fixture
def router(session_manager: SessionManager) -> MessageRouter:
    return MessageRouter(session_manager)


@pytest.fixture
def creator() -> MockConnection:
    return MockConnection("conn-creator")


@pytest.fixture
def joiner() -> MockConnection:
    return MockConnection("conn-joiner")
