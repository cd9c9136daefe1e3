"""Game rule configuration via environment variables."""

import string

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings

ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits

PLAYERS_PER_ROOM = 2


class GameSettings(BaseSettings):
    model_config = {"env_prefix": "COINFLIP_GAME_"}

    stake_amount: float = Field(default=10.0, gt=0)
    room_code_length: int = Field(default=6, ge=4, le=12)
    # Retries after a code collision before create_room gives up.
    max_code_attempts: int = Field(default=10, ge=1)
    verification_base_url: str = Field(default="https://tools.pnxbet.com/fair/coinflip", min_length=1)

    @computed_field
    @property
    def total_pot(self) -> float:
        return self.stake_amount * PLAYERS_PER_ROOM
