"""Pytest fixtures for HP blackjack tests."""

from random import Random

import pytest

from config import GameConfig
from core.cards import Card, Shoe, full_deck
from core.game import RoundStateMachine
from core.hand import Hand, Owner


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return Random(42)


@pytest.fixture
def shoe(rng):
    """A shuffled 52-card shoe."""
    return Shoe(rng=rng)


@pytest.fixture
def rules():
    """Default table rules with a fresh shoe every round."""
    return GameConfig(reshuffle_policy="per_round")


@pytest.fixture
def make_shoe(rng):
    """
    Build a shoe that deals the given cards first.

    The opening deal goes player, dealer, player, dealer, so
    ``make_shoe("AS", "5H", "KD", "9C")`` gives the player A-K against 5-9.
    """

    def _make(*codes: str) -> Shoe:
        top = [Card.from_string(code) for code in codes]
        rest = [card for card in full_deck() if card not in top]
        return Shoe.from_cards(top + rest, rng=rng)

    return _make


@pytest.fixture
def make_game(make_shoe, rules):
    """Build a table with the given HP and stacked cards."""

    def _make(*codes: str, hp: int = 100, table_rules: GameConfig | None = None) -> RoundStateMachine:
        return RoundStateMachine(hp=hp, rules=table_rules or rules, shoe=make_shoe(*codes))

    return _make


def make_hand(*codes: str, owner: Owner = Owner.PLAYER) -> Hand:
    """Build a hand from card codes."""
    return Hand(owner, [Card.from_string(code) for code in codes])


@pytest.fixture
def empty_hand():
    """An empty player hand."""
    return Hand()


@pytest.fixture
def blackjack_hand():
    """A natural blackjack hand."""
    return make_hand("AS", "KH")


@pytest.fixture
def soft_17_hand():
    """A soft 17 hand (A-6)."""
    return make_hand("AS", "6H")


@pytest.fixture
def hard_16_hand():
    """A hard 16 hand (10-6)."""
    return make_hand("10S", "6H")


@pytest.fixture
def bust_hand():
    """A busted hand."""
    return make_hand("10S", "6H", "KC")

