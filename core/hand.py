"""Hand evaluation for blackjack."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Iterator, NamedTuple

from core.cards import Card

BLACKJACK = 21


class Owner(Enum):
    """Which side of the table a hand belongs to."""

    PLAYER = "player"
    DEALER = "dealer"


class HandValue(NamedTuple):
    """Best total of a hand and whether an Ace still counts as 11."""

    total: int
    is_soft: bool


def evaluate(cards: Iterable[Card]) -> HandValue:
    """
    Calculate the best value of a set of cards.

    Every Ace starts at 11; Aces are downgraded to 1 one at a time while the
    total is over 21. The result depends only on the multiset of cards.
    """
    total = 0
    aces = 0

    for card in cards:
        total += card.value
        if card.is_ace:
            aces += 1

    # Reduce aces from 11 to 1 as needed
    while total > BLACKJACK and aces > 0:
        total -= 10
        aces -= 1

    return HandValue(total, aces > 0)


@dataclass
class Hand:
    """A blackjack hand. Its value is always derived from its cards."""

    owner: Owner = Owner.PLAYER
    cards: list[Card] = field(default_factory=list)

    def add_card(self, card: Card) -> None:
        """Add a card to the hand."""
        self.cards.append(card)

    def clear(self) -> None:
        """Remove all cards from the hand."""
        self.cards.clear()

    @property
    def evaluation(self) -> HandValue:
        """Return the (total, is_soft) pair."""
        return evaluate(self.cards)

    @property
    def value(self) -> int:
        """Return the best total."""
        return self.evaluation.total

    @property
    def is_soft(self) -> bool:
        """Check if an Ace is still counted as 11."""
        return self.evaluation.is_soft

    @property
    def is_blackjack(self) -> bool:
        """Check if the hand is a natural blackjack (21 with 2 cards)."""
        return len(self.cards) == 2 and self.value == BLACKJACK

    @property
    def is_busted(self) -> bool:
        """Check if the hand has busted (value > 21)."""
        return self.value > BLACKJACK

    @property
    def display(self) -> str:
        """
        Render the total the way the table shows it.

        A soft total below 21 shows both readings, e.g. ``7/17`` for A-6.
        """
        total, is_soft = self.evaluation
        if is_soft and total < BLACKJACK:
            return f"{total - 10}/{total}"
        return str(total)

    def __len__(self) -> int:
        return len(self.cards)

    def __iter__(self) -> Iterator[Card]:
        return iter(self.cards)

    def __str__(self) -> str:
        cards_str = " ".join(str(card) for card in self.cards)
        value_str = f"({self.display})"
        if self.is_blackjack:
            value_str = "(BLACKJACK)"
        if self.is_busted:
            value_str = "(BUST)"
        return f"{cards_str} {value_str}"

    def __repr__(self) -> str:
        return f"Hand({self.owner.value}, {self.cards!r}, value={self.value})"


def compare_hands(player_hand: Hand, dealer_hand: Hand) -> int:
    """
    Compare a standing player hand against the finished dealer hand.

    Returns:
        1 if player wins
        -1 if dealer wins
        0 if push (tie)
    """
    # Player busts always loses
    if player_hand.is_busted:
        return -1

    # Dealer busts, player wins
    if dealer_hand.is_busted:
        return 1

    # Blackjack comparisons
    player_bj = player_hand.is_blackjack
    dealer_bj = dealer_hand.is_blackjack

    if player_bj and dealer_bj:
        return 0  # Push
    if player_bj:
        return 1  # Player blackjack wins
    if dealer_bj:
        return -1  # Dealer blackjack beats a drawn 21

    # Compare values
    player_value = player_hand.value
    dealer_value = dealer_hand.value
    if player_value > dealer_value:
        return 1
    if dealer_value > player_value:
        return -1
    return 0  # Push
