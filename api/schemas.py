"""Pydantic schemas for API requests and responses."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from core.cards import Card
from core.game import (
    DoubleDown,
    GameAction,
    Hit,
    NextRound,
    PlaceBet,
    RoundStateSnapshot,
    Stand,
    Surrender,
)
from core.session import Profile

ActionName = Literal["place_bet", "hit", "stand", "double_down", "surrender", "next_round"]


# Game schemas
class ActionRequest(BaseModel):
    """Request for a player action."""

    action: ActionName
    amount: int | None = Field(default=None, description="HP to stake, place_bet only")
    expected_version: int | None = Field(
        default=None,
        ge=0,
        description="Version of the snapshot the action was chosen from",
    )

    @model_validator(mode="after")
    def _check_amount(self) -> "ActionRequest":
        if self.action == "place_bet" and self.amount is None:
            raise ValueError("place_bet requires an amount")
        if self.action != "place_bet" and self.amount is not None:
            raise ValueError(f"{self.action} does not take an amount")
        if self.action != "place_bet" and self.expected_version is None:
            raise ValueError(f"{self.action} requires expected_version")
        return self

    def to_action(self) -> GameAction:
        """Convert to the engine action variant."""
        if self.action == "place_bet":
            assert self.amount is not None
            return PlaceBet(self.amount)
        return {
            "hit": Hit,
            "stand": Stand,
            "double_down": DoubleDown,
            "surrender": Surrender,
            "next_round": NextRound,
        }[self.action]()


class CardResponse(BaseModel):
    """Card representation."""

    model_config = ConfigDict(from_attributes=True)

    rank: int = Field(..., ge=1, le=13)
    suit: Literal["clubs", "diamonds", "hearts", "spades"]
    label: str

    @classmethod
    def from_card(cls, card: Card) -> "CardResponse":
        return cls(rank=card.rank.value, suit=card.suit.value, label=str(card))


class GameStateResponse(BaseModel):
    """Current round state as seen by the player."""

    round: int
    version: int
    game_phase: Literal["betting", "playing", "result"]
    player_hand: list[CardResponse]
    dealer_hand: list[CardResponse]
    player_value: str
    dealer_value: str
    current_bet: int
    hp: int
    can_double: bool
    can_surrender: bool
    round_result: Literal["win", "lose", "push", "blackjack", "bust", "surrender"] | None
    message: str
    game_over: bool

    @classmethod
    def from_snapshot(cls, snapshot: RoundStateSnapshot) -> "GameStateResponse":
        return cls(
            round=snapshot.round,
            version=snapshot.version,
            game_phase=snapshot.game_phase,  # type: ignore[arg-type]
            player_hand=[CardResponse.from_card(c) for c in snapshot.player_hand],
            dealer_hand=[CardResponse.from_card(c) for c in snapshot.dealer_hand],
            player_value=snapshot.player_value,
            dealer_value=snapshot.dealer_value,
            current_bet=snapshot.current_bet,
            hp=snapshot.hp,
            can_double=snapshot.can_double,
            can_surrender=snapshot.can_surrender,
            round_result=snapshot.round_result.value if snapshot.round_result else None,  # type: ignore[arg-type]
            message=snapshot.message,
            game_over=snapshot.game_over,
        )


class ActionResponse(BaseModel):
    """Result of an accepted action. ``hp`` is authoritative."""

    success: bool = True
    game_state: GameStateResponse
    hp_change: int
    hp: int
    message: str
    replayed: bool = False


class ErrorResponse(BaseModel):
    """Rejected request."""

    success: bool = False
    error: str
    message: str


# Profile schemas
class ProfileRequest(BaseModel):
    """Create or update a profile."""

    username: str = Field(..., min_length=1, max_length=32)
    avatar: str | None = Field(default=None, max_length=2048)


class ProfileResponse(BaseModel):
    """Public profile of a player."""

    model_config = ConfigDict(from_attributes=True)

    username: str
    avatar: str | None
    total_wins: int
    total_loses: int
    total_games: int
    registered_at: datetime
    last_active: datetime

    @classmethod
    def from_profile(cls, profile: Profile) -> "ProfileResponse":
        return cls.model_validate(profile)
