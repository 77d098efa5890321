"""Fixed dealer drawing policy."""

from core.cards import Card, Shoe
from core.hand import Hand


class DealerPolicy:
    """
    House strategy: draw while the total is below the stand threshold.

    Soft totals are treated like hard ones, so the dealer stands on soft 17.
    """

    def __init__(self, stands_on: int = 17) -> None:
        self.stands_on = stands_on

    def should_hit(self, hand: Hand) -> bool:
        """Determine if the dealer draws another card."""
        return hand.value < self.stands_on

    def act(self, hand: Hand, shoe: Shoe) -> list[Card]:
        """Play out the dealer hand in place and return the drawn cards."""
        drawn: list[Card] = []
        while self.should_hit(hand):
            card = shoe.draw()
            hand.add_card(card)
            drawn.append(card)
        return drawn
