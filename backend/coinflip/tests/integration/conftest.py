import pytest
from starlette.testclient import TestClient

from coinflip.server.app import create_app
from coinflip.server.settings import ServerSettings


def make_settings(**overrides) -> ServerSettings:
    """Memory-backed settings with no flip delays, so sequences finish immediately."""
    values = {
        "storage_backend": "memory",
        "log_dir": None,
        "auto_start_delay_seconds": 0,
        "flip_animation_seconds": 0,
        "replay_delay_seconds": 0,
        "cors_origins": ["http://localhost:3000"],
    }
    values.update(overrides)
    return ServerSettings(**values)


@pytest.fixture
def client():
    app = create_app(settings=make_settings())
    with TestClient(app) as client:
        yield client
