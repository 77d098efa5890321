"""HP wager escrow and payout arithmetic."""

from decimal import ROUND_FLOOR, Decimal

from core.errors import InsufficientHP, InvalidAction
from core.game.state import RoundResult


def payout_delta(outcome: RoundResult, bet: int, blackjack_payout: float = 1.5) -> int:
    """
    Signed HP change for a settled bet.

    Fractional payouts are rounded down: a natural on 15 HP at 3:2 pays 22,
    a surrender on 15 HP costs 7.
    """
    stake = Decimal(bet)
    if outcome == RoundResult.BLACKJACK:
        result = stake * Decimal(str(blackjack_payout))
    elif outcome == RoundResult.WIN:
        result = stake
    elif outcome == RoundResult.PUSH:
        result = Decimal(0)
    elif outcome == RoundResult.SURRENDER:
        return -int((stake / 2).to_integral_value(rounding=ROUND_FLOOR))
    else:  # LOSE, BUST
        result = -stake
    return int(result.to_integral_value(rounding=ROUND_FLOOR))


class WagerLedger:
    """
    HP balance of one player plus the stake held for the current round.

    ``balance`` only changes at settlement; ``available`` is what can still
    be staked while a bet is in escrow.
    """

    def __init__(self, balance: int, escrowed: int = 0, blackjack_payout: float = 1.5) -> None:
        if balance < 0:
            raise ValueError("HP balance cannot be negative")
        if not 0 <= escrowed <= balance:
            raise ValueError("Escrow must be covered by the balance")
        self._balance = balance
        self._escrowed = escrowed
        self.blackjack_payout = blackjack_payout

    @property
    def balance(self) -> int:
        """Committed HP."""
        return self._balance

    @property
    def escrowed(self) -> int:
        """HP staked on the current round."""
        return self._escrowed

    @property
    def available(self) -> int:
        """HP not yet staked."""
        return self._balance - self._escrowed

    def escrow(self, amount: int) -> None:
        """Stake ``amount`` more HP on the current round."""
        if amount < 1:
            raise InvalidAction(f"Bet must be at least 1 HP, got {amount}")
        if amount > self.available:
            raise InsufficientHP(required=amount, available=self.available)
        self._escrowed += amount

    def settle(self, outcome: RoundResult) -> int:
        """Apply the outcome to the balance, release escrow and return the delta."""
        delta = payout_delta(outcome, self._escrowed, self.blackjack_payout)
        self._balance += delta
        self._escrowed = 0
        return delta

    def refund(self) -> None:
        """Release the escrow without changing the balance."""
        self._escrowed = 0

    def __repr__(self) -> str:
        return f"WagerLedger(balance={self._balance}, escrowed={self._escrowed})"
