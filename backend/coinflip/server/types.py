from pydantic import BaseModel, ConfigDict, Field

from coinflip.logic.enums import CoinSide
from coinflip.messaging.types import PlayerName


class CreateRoomRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    side: CoinSide
    player_name: PlayerName | None = None


class VerifyRequest(BaseModel):
    """Values copied from a flip's verification payload and game record."""

    model_config = ConfigDict(extra="forbid")

    server_seed: str = Field(min_length=1, max_length=256)
    client_seed: str = Field(min_length=1, max_length=256)
    nonce: int = Field(ge=0, strict=True)
    hash: str = Field(min_length=1, max_length=128)
    side: str = Field(min_length=1, max_length=16)
