"""Round phases and outcomes."""

from enum import Enum


class GamePhase(Enum):
    """
    Round state machine states.

    Flow: BETTING → PLAYER_TURN → DEALER_TURN → SETTLEMENT → BETTING
    """

    # Waiting for a wager
    BETTING = "betting"

    # Player decisions
    PLAYER_TURN = "player_turn"

    # Dealer draws; never observed between actions
    DEALER_TURN = "dealer_turn"

    # Outcome settled, waiting for the next round
    SETTLEMENT = "settlement"

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()

    @property
    def public_name(self) -> str:
        """Phase name as exposed to clients: betting, playing or result."""
        return {
            GamePhase.BETTING: "betting",
            GamePhase.PLAYER_TURN: "playing",
            GamePhase.DEALER_TURN: "result",
            GamePhase.SETTLEMENT: "result",
        }[self]


class RoundResult(Enum):
    """Terminal outcome of a round."""

    WIN = "win"
    LOSE = "lose"
    PUSH = "push"
    BLACKJACK = "blackjack"
    BUST = "bust"
    SURRENDER = "surrender"

    @property
    def won(self) -> bool | None:
        """True for a win, False for a loss, None for a push."""
        if self in (RoundResult.WIN, RoundResult.BLACKJACK):
            return True
        if self == RoundResult.PUSH:
            return None
        return False
