"""Round engine and state management."""

from core.game.actions import (
    DoubleDown,
    GameAction,
    Hit,
    NextRound,
    PlaceBet,
    Stand,
    Surrender,
)
from core.game.dealer import DealerPolicy
from core.game.events import GameEvent, EventType
from core.game.ledger import WagerLedger, payout_delta
from core.game.state import GamePhase, RoundResult
from core.game.engine import ActionOutcome, RoundStateMachine, RoundStateSnapshot

__all__ = [
    "GameAction",
    "PlaceBet",
    "Hit",
    "Stand",
    "DoubleDown",
    "Surrender",
    "NextRound",
    "DealerPolicy",
    "GameEvent",
    "EventType",
    "WagerLedger",
    "payout_delta",
    "GamePhase",
    "RoundResult",
    "ActionOutcome",
    "RoundStateMachine",
    "RoundStateSnapshot",
]
