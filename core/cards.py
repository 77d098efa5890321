"""Card and Shoe classes - immutable card representations."""

from dataclasses import dataclass
from enum import Enum
from random import Random
from typing import Iterable, Iterator

from core.errors import ShoeExhausted

SHOE_SIZE = 52


class Suit(Enum):
    """Card suits."""

    CLUBS = "clubs"
    DIAMONDS = "diamonds"
    HEARTS = "hearts"
    SPADES = "spades"

    def __str__(self) -> str:
        symbols = {
            Suit.CLUBS: "♣",
            Suit.DIAMONDS: "♦",
            Suit.HEARTS: "♥",
            Suit.SPADES: "♠",
        }
        return symbols[self]


class Rank(Enum):
    """Card ranks, Ace low (1) and face cards 11-13."""

    ACE = 1
    TWO = 2
    THREE = 3
    FOUR = 4
    FIVE = 5
    SIX = 6
    SEVEN = 7
    EIGHT = 8
    NINE = 9
    TEN = 10
    JACK = 11
    QUEEN = 12
    KING = 13

    def __str__(self) -> str:
        if 2 <= self.value <= 10:
            return str(self.value)
        return {
            Rank.ACE: "A",
            Rank.JACK: "J",
            Rank.QUEEN: "Q",
            Rank.KING: "K",
        }[self]

    @property
    def blackjack_value(self) -> int:
        """Return the blackjack point value (Ace = 11, face cards = 10)."""
        if self == Rank.ACE:
            return 11
        return min(self.value, 10)

    @property
    def is_ace(self) -> bool:
        """Check if this rank is an Ace."""
        return self == Rank.ACE


@dataclass(frozen=True, slots=True)
class Card:
    """Immutable playing card."""

    rank: Rank
    suit: Suit

    def __str__(self) -> str:
        return f"{self.rank}{self.suit}"

    def __repr__(self) -> str:
        return f"Card({self.rank.name}, {self.suit.name})"

    @property
    def value(self) -> int:
        """Return the blackjack point value."""
        return self.rank.blackjack_value

    @property
    def is_ace(self) -> bool:
        """Check if this card is an Ace."""
        return self.rank.is_ace

    @classmethod
    def from_string(cls, s: str) -> "Card":
        """Create a card from a string like 'AS', '10h' or 'K♥'."""
        s = s.strip().upper()
        if len(s) < 2:
            raise ValueError(f"Invalid card string: {s}")

        rank_str = s[:-1]
        suit_str = s[-1]

        rank_map = {str(rank): rank for rank in Rank}
        rank_map["T"] = Rank.TEN

        suit_map = {
            "C": Suit.CLUBS,
            "♣": Suit.CLUBS,
            "D": Suit.DIAMONDS,
            "♦": Suit.DIAMONDS,
            "H": Suit.HEARTS,
            "♥": Suit.HEARTS,
            "S": Suit.SPADES,
            "♠": Suit.SPADES,
        }

        if rank_str not in rank_map:
            raise ValueError(f"Invalid rank: {rank_str}")
        if suit_str not in suit_map:
            raise ValueError(f"Invalid suit: {suit_str}")

        return cls(rank_map[rank_str], suit_map[suit_str])


def full_deck() -> list[Card]:
    """Return the 52 cards of a standard deck in suit-major order."""
    return [Card(rank, suit) for suit in Suit for rank in Rank]


class Shoe:
    """
    A single 52-card deck with a draw cursor.

    Cards are issued in order from the cursor and never reissued until
    ``reset()`` rebuilds and reshuffles the whole deck.
    """

    def __init__(self, rng: Random | None = None) -> None:
        """
        Initialize a freshly shuffled shoe.

        Args:
            rng: Random number generator for shuffling
        """
        self._rng = rng or Random()
        self._cards: list[Card] = []
        self._cursor = 0
        self.reset()

    @classmethod
    def from_cards(
        cls,
        cards: Iterable[Card],
        cursor: int = 0,
        rng: Random | None = None,
    ) -> "Shoe":
        """
        Build a shoe that issues ``cards`` in the given order.

        Used to restore a persisted shoe and to stack the deck in tests.
        The order must not repeat a card.
        """
        ordered = list(cards)
        if len(set(ordered)) != len(ordered):
            raise ValueError("A shoe cannot contain the same card twice")
        if len(ordered) > SHOE_SIZE:
            raise ValueError(f"A shoe holds at most {SHOE_SIZE} cards")
        if not 0 <= cursor <= len(ordered):
            raise ValueError("Cursor is outside the shoe")

        shoe = cls.__new__(cls)
        shoe._rng = rng or Random()
        shoe._cards = ordered
        shoe._cursor = cursor
        return shoe

    def reset(self) -> None:
        """Rebuild all 52 cards and shuffle them."""
        self._cards = full_deck()
        self._rng.shuffle(self._cards)
        self._cursor = 0

    def draw(self) -> Card:
        """Draw the card under the cursor."""
        if self._cursor >= len(self._cards):
            raise ShoeExhausted()
        card = self._cards[self._cursor]
        self._cursor += 1
        return card

    @property
    def cursor(self) -> int:
        """Return the index of the next card to be drawn."""
        return self._cursor

    @property
    def cards(self) -> list[Card]:
        """Return the shoe order, drawn and undrawn."""
        return list(self._cards)

    @property
    def cards_remaining(self) -> int:
        """Return the number of cards remaining."""
        return len(self._cards) - self._cursor

    @property
    def cards_dealt(self) -> int:
        """Return the number of cards dealt since the last reset."""
        return self._cursor

    def __len__(self) -> int:
        return self.cards_remaining

    def __iter__(self) -> Iterator[Card]:
        return iter(self._cards[self._cursor:])
