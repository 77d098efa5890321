"""Player actions as a closed set of variants."""

from dataclasses import dataclass
from typing import Any, Union

from core.game.state import GamePhase


@dataclass(frozen=True)
class PlaceBet:
    """Stake HP and deal the opening cards."""

    amount: int


@dataclass(frozen=True)
class Hit:
    """Take one more card."""


@dataclass(frozen=True)
class Stand:
    """Keep the current hand and let the dealer play."""


@dataclass(frozen=True)
class DoubleDown:
    """Double the stake, take exactly one card, then stand."""


@dataclass(frozen=True)
class Surrender:
    """Give up the hand for half the stake."""


@dataclass(frozen=True)
class NextRound:
    """Clear the table and return to betting."""


GameAction = Union[PlaceBet, Hit, Stand, DoubleDown, Surrender, NextRound]

ACTION_NAMES: dict[type, str] = {
    PlaceBet: "place_bet",
    Hit: "hit",
    Stand: "stand",
    DoubleDown: "double_down",
    Surrender: "surrender",
    NextRound: "next_round",
}

LEGAL_ACTIONS: dict[GamePhase, tuple[type, ...]] = {
    GamePhase.BETTING: (PlaceBet,),
    GamePhase.PLAYER_TURN: (Hit, Stand, DoubleDown, Surrender),
    GamePhase.DEALER_TURN: (),
    GamePhase.SETTLEMENT: (NextRound,),
}


def action_name(action: GameAction) -> str:
    """Return the wire name of an action."""
    return ACTION_NAMES[type(action)]


def action_to_dict(action: GameAction) -> dict[str, Any]:
    """Serialize an action for storage."""
    data: dict[str, Any] = {"action": action_name(action)}
    if isinstance(action, PlaceBet):
        data["amount"] = action.amount
    return data
