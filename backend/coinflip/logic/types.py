"""Result models returned by CoinflipService."""

from pydantic import BaseModel

from coinflip.logic.enums import CoinSide
from coinflip.logic.fairness import VerificationPayload
from shared.dal.models import Game, Player, Room


class FlipResult(BaseModel, frozen=True):
    """Outcome of one resolved flip, with everything needed to broadcast and verify it."""

    result: CoinSide
    winner_side: CoinSide
    game: Game
    verification: VerificationPayload
    winner_player: Player
    room: Room
    players: list[Player]
