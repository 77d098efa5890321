"""Core HP blackjack engine - 100% transport-agnostic."""

from core.cards import Card, Shoe, Rank, Suit
from core.hand import Hand, HandValue, Owner, evaluate
from core.session import PlayerSession, Profile

__all__ = [
    "Card",
    "Shoe",
    "Rank",
    "Suit",
    "Hand",
    "HandValue",
    "Owner",
    "evaluate",
    "PlayerSession",
    "Profile",
]
