from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from coinflip.server.settings import ServerSettings


class SessionConfig(BaseModel):
    """Timing and disclosure options for the session coordinator."""

    auto_start_delay_seconds: float = Field(default=2.0, ge=0)
    flip_animation_seconds: float = Field(default=3.0, ge=0)
    replay_delay_seconds: float = Field(default=1.0, ge=0)
    reveal_server_seed: bool = False
    debug: bool = False

    @classmethod
    def from_settings(cls, settings: ServerSettings) -> SessionConfig:
        return cls(
            auto_start_delay_seconds=settings.auto_start_delay_seconds,
            flip_animation_seconds=settings.flip_animation_seconds,
            replay_delay_seconds=settings.replay_delay_seconds,
            reveal_server_seed=settings.reveal_server_seed,
            debug=settings.debug,
        )
