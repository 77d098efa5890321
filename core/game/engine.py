"""HP blackjack round engine with state machine."""

import logging
from dataclasses import dataclass, field
from random import Random
from typing import Callable, assert_never

from transitions import Machine

from config import GameConfig
from core.cards import Card, Shoe
from core.errors import InvalidAction, ShoeExhausted
from core.hand import Hand, Owner, compare_hands
from core.game.actions import (
    LEGAL_ACTIONS,
    DoubleDown,
    GameAction,
    Hit,
    NextRound,
    PlaceBet,
    Stand,
    Surrender,
    action_name,
)
from core.game.dealer import DealerPolicy
from core.game.events import EventEmitter, EventType, GameEvent
from core.game.ledger import WagerLedger
from core.game.state import GamePhase, RoundResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundStateSnapshot:
    """What the player is allowed to see of the round."""

    round: int
    version: int
    game_phase: str
    player_hand: list[Card]
    dealer_hand: list[Card]
    player_value: str
    dealer_value: str
    current_bet: int
    hp: int
    can_double: bool
    can_surrender: bool
    round_result: RoundResult | None
    message: str
    game_over: bool


@dataclass(frozen=True)
class ActionOutcome:
    """Result of one accepted action."""

    snapshot: RoundStateSnapshot
    hp_change: int = 0
    message: str = ""
    settled: RoundResult | None = None
    events: list[GameEvent] = field(default_factory=list)


class RoundStateMachine:
    """
    One player's table: shoe, hands, HP ledger and the round phase.

    Every public mutation goes through ``apply``; an action that is not legal
    for the current phase raises ``InvalidAction`` before anything changes.
    """

    STATES = [phase.value for phase in GamePhase]

    TRANSITIONS = [
        {"trigger": "deal", "source": "betting", "dest": "player_turn"},
        {"trigger": "natural", "source": "betting", "dest": "settlement"},
        {"trigger": "bust", "source": "player_turn", "dest": "settlement"},
        {"trigger": "forfeit", "source": "player_turn", "dest": "settlement"},
        {"trigger": "hand_over", "source": "player_turn", "dest": "dealer_turn"},
        {"trigger": "dealer_done", "source": "dealer_turn", "dest": "settlement"},
        {"trigger": "clear_table", "source": "settlement", "dest": "betting"},
        {"trigger": "void_round", "source": "*", "dest": "betting"},
    ]

    def __init__(
        self,
        hp: int,
        rules: GameConfig | None = None,
        rng: Random | None = None,
        shoe: Shoe | None = None,
        phase: GamePhase = GamePhase.BETTING,
    ) -> None:
        """
        Initialize a table.

        Args:
            hp: Committed HP balance of the player
            rules: Table rules (uses defaults if not provided)
            rng: Random number generator for reproducible shoes
            shoe: Pre-built shoe, e.g. a restored or stacked one
            phase: Phase to start in, used when restoring a round
        """
        self.rules = rules or GameConfig()
        self.shoe = shoe or Shoe(rng=rng)
        self.ledger = WagerLedger(hp, blackjack_payout=self.rules.blackjack_payout)
        self.dealer_policy = DealerPolicy(stands_on=self.rules.dealer_stands_on)

        self.player_hand = Hand(Owner.PLAYER)
        self.dealer_hand = Hand(Owner.DEALER)
        self.current_bet = 0
        self.round_number = 1
        self.version = 0
        self.round_result: RoundResult | None = None
        self.message = "Place your bet."
        self.events = EventEmitter()

        self.machine = Machine(
            model=self,
            states=self.STATES,
            transitions=self.TRANSITIONS,
            initial=phase.value,
            auto_transitions=False,
            model_attribute="_machine_state",
        )

    @property
    def phase(self) -> GamePhase:
        """Get current phase as enum."""
        return GamePhase(self._machine_state)  # type: ignore[attr-defined]

    @property
    def hp(self) -> int:
        """Committed HP balance."""
        return self.ledger.balance

    @property
    def game_over(self) -> bool:
        """Check if the player can no longer place a bet."""
        return self.ledger.balance == 0 and self.phase in (
            GamePhase.BETTING,
            GamePhase.SETTLEMENT,
        )

    @property
    def can_double(self) -> bool:
        """Check if doubling down is allowed."""
        return (
            self.phase == GamePhase.PLAYER_TURN
            and len(self.player_hand) == 2
            and self.ledger.balance >= self.current_bet * 2
        )

    @property
    def can_surrender(self) -> bool:
        """Surrender is only offered right after the initial deal."""
        return self.phase == GamePhase.PLAYER_TURN and len(self.player_hand) == 2

    def subscribe(
        self,
        handler: Callable[[GameEvent], None],
        event_type: EventType | None = None,
    ) -> None:
        """Subscribe to game events."""
        self.events.subscribe(handler, event_type)

    def apply(self, action: GameAction) -> ActionOutcome:
        """
        Validate and execute one player action.

        Raises:
            InvalidAction: the action is not legal now; nothing changed
            InsufficientHP: the stake is not covered; nothing changed
            ShoeExhausted: the round was voided and the shoe reset
        """
        if not isinstance(action, LEGAL_ACTIONS[self.phase]):
            raise InvalidAction(
                f"Cannot {action_name(action).replace('_', ' ')} during {str(self.phase).lower()}"
            )

        self.events.clear_history()
        try:
            match action:
                case PlaceBet(amount=amount):
                    delta = self._place_bet(amount)
                case Hit():
                    delta = self._hit()
                case Stand():
                    delta = self._stand()
                case DoubleDown():
                    delta = self._double_down()
                case Surrender():
                    delta = self._surrender()
                case NextRound():
                    delta = self._next_round()
                case _:
                    assert_never(action)
        except ShoeExhausted:
            self.abort_round()
            raise

        self.version += 1
        settled = self.round_result if delta is not None else None
        return ActionOutcome(
            snapshot=self.snapshot(),
            hp_change=delta or 0,
            message=self.message,
            settled=settled,
            events=self.events.history,
        )

    def _place_bet(self, amount: int) -> int | None:
        """Escrow the stake and deal player, dealer, player, dealer."""
        if self.ledger.balance == 0:
            raise InvalidAction("No HP left; start a new game")
        if amount < 1:
            raise InvalidAction(f"Bet must be between 1 and {self.ledger.balance} HP")

        self.ledger.escrow(amount)
        if (
            self.rules.reshuffle_policy == "continuous"
            and self.shoe.cards_remaining < self.rules.reshuffle_threshold
        ):
            self._reshuffle()

        self.current_bet = amount
        self.round_result = None
        self.events.emit_new(EventType.BET_PLACED, amount=amount)

        self._deal_card_to_hand(self.player_hand)
        self._deal_card_to_hand(self.dealer_hand)
        self._deal_card_to_hand(self.player_hand)
        self._deal_card_to_hand(self.dealer_hand, face_up=False)
        self.events.emit_new(EventType.ROUND_STARTED, round=self.round_number)

        if self.player_hand.is_blackjack:
            self.events.emit_new(EventType.PLAYER_BLACKJACK)
            outcome = (
                RoundResult.PUSH
                if compare_hands(self.player_hand, self.dealer_hand) == 0
                else RoundResult.BLACKJACK
            )
            self.natural()
            return self._settle(outcome)

        self.deal()
        self.message = (
            f"Bet placed: {amount} HP. You have {self.player_hand.display}. "
            "Hit, stand, double down or surrender."
        )
        return None

    def _hit(self) -> int | None:
        """Player takes one more card."""
        card = self._deal_card_to_hand(self.player_hand)
        self.events.emit_new(EventType.PLAYER_HIT, hand_value=self.player_hand.value)

        if self.player_hand.is_busted:
            self.events.emit_new(EventType.PLAYER_BUSTS, hand_value=self.player_hand.value)
            self.bust()
            return self._settle(RoundResult.BUST)

        self.message = f"You drew {card}. Your total is {self.player_hand.display}."
        return None

    def _stand(self) -> int:
        """Player stands; the dealer plays and the round settles."""
        self.events.emit_new(EventType.PLAYER_STAND, hand_value=self.player_hand.value)
        return self._play_dealer()

    def _double_down(self) -> int:
        """Double the stake, draw exactly one card and stand."""
        if len(self.player_hand) != 2:
            raise InvalidAction("Can only double down on the first two cards")
        if self.ledger.balance < self.current_bet * 2:
            raise InvalidAction(
                f"Doubling needs {self.current_bet * 2} HP, you have {self.ledger.balance}"
            )

        self.ledger.escrow(self.current_bet)
        self.current_bet *= 2
        self._deal_card_to_hand(self.player_hand)
        self.events.emit_new(
            EventType.PLAYER_DOUBLE,
            hand_value=self.player_hand.value,
            new_bet=self.current_bet,
        )

        if self.player_hand.is_busted:
            self.events.emit_new(EventType.PLAYER_BUSTS, hand_value=self.player_hand.value)
            self.bust()
            return self._settle(RoundResult.BUST)

        return self._play_dealer()

    def _surrender(self) -> int:
        """Give up the hand for half the stake."""
        if not self.can_surrender:
            raise InvalidAction("Can only surrender right after the deal")

        self.events.emit_new(EventType.PLAYER_SURRENDER)
        self.forfeit()
        return self._settle(RoundResult.SURRENDER)

    def _next_round(self) -> None:
        """Clear the table and return to betting."""
        if self.ledger.balance == 0:
            raise InvalidAction("No HP left; start a new game")

        self.player_hand.clear()
        self.dealer_hand.clear()
        self.current_bet = 0
        self.round_result = None
        self.round_number += 1
        if self.rules.reshuffle_policy == "per_round":
            self._reshuffle()
        self.clear_table()
        self.message = f"Round {self.round_number}. Place your bet."
        return None

    def abort_round(self) -> None:
        """Void the current round: refund the stake, reset the shoe, back to betting."""
        logger.warning(
            "Voiding round %d in phase %s; shoe had %d cards left",
            self.round_number,
            self.phase.value,
            self.shoe.cards_remaining,
        )
        self.ledger.refund()
        self.player_hand.clear()
        self.dealer_hand.clear()
        self.current_bet = 0
        self.round_result = None
        self._reshuffle()
        self.void_round()
        self.version += 1
        self.message = "The round was voided and your bet returned. Place your bet."
        self.events.emit_new(EventType.ROUND_ABORTED, round=self.round_number)

    def _play_dealer(self) -> int:
        """Dealer reveals, draws to the stand threshold, then the round settles."""
        self.hand_over()
        self.events.emit_new(
            EventType.DEALER_REVEALS,
            card=str(self.dealer_hand.cards[1]),
            hand_value=self.dealer_hand.value,
        )

        for _ in self.dealer_policy.act(self.dealer_hand, self.shoe):
            self.events.emit_new(EventType.DEALER_HITS, hand_value=self.dealer_hand.value)

        if self.dealer_hand.is_busted:
            self.events.emit_new(EventType.DEALER_BUSTS)
        else:
            self.events.emit_new(EventType.DEALER_STANDS, hand_value=self.dealer_hand.value)

        comparison = compare_hands(self.player_hand, self.dealer_hand)
        if comparison > 0:
            outcome = RoundResult.WIN
        elif comparison < 0:
            outcome = RoundResult.LOSE
        else:
            outcome = RoundResult.PUSH

        self.dealer_done()
        return self._settle(outcome)

    def _settle(self, outcome: RoundResult) -> int:
        """Pay out or collect the stake and record the result."""
        bet = self.current_bet
        delta = self.ledger.settle(outcome)
        self.round_result = outcome

        if outcome == RoundResult.PUSH:
            self.events.emit_new(EventType.PUSH)
        elif delta > 0:
            self.events.emit_new(EventType.PLAYER_WINS, amount=delta)
        else:
            self.events.emit_new(EventType.PLAYER_LOSES, amount=-delta)
        self.events.emit_new(
            EventType.ROUND_ENDED,
            result=outcome.value,
            hp_change=delta,
            hp=self.ledger.balance,
        )

        self.message = self._result_message(outcome, bet, delta)
        if self.ledger.balance == 0:
            self.events.emit_new(EventType.GAME_OVER)
            self.message += " Your HP is depleted."

        logger.info(
            "Round %d settled: %s, bet=%d, hp_change=%+d, hp=%d",
            self.round_number,
            outcome.value,
            bet,
            delta,
            self.ledger.balance,
        )
        return delta

    def _result_message(self, outcome: RoundResult, bet: int, delta: int) -> str:
        player = self.player_hand.value
        dealer = self.dealer_hand.value
        if outcome == RoundResult.BLACKJACK:
            return f"Blackjack! You win {delta} HP."
        if outcome == RoundResult.BUST:
            return f"Bust with {player}! You lose {bet} HP."
        if outcome == RoundResult.SURRENDER:
            return f"You surrendered and lose {-delta} HP."
        if outcome == RoundResult.PUSH:
            return f"Push at {player}. Your {bet} HP bet is returned."
        if outcome == RoundResult.WIN:
            if self.dealer_hand.is_busted:
                return f"Dealer busts with {dealer}! You win {delta} HP."
            return f"You win {delta} HP, {player} against {dealer}."
        return f"Dealer wins with {dealer} against {player}. You lose {bet} HP."

    def _deal_card_to_hand(self, hand: Hand, face_up: bool = True) -> Card:
        """Deal a card to a hand."""
        card = self.shoe.draw()
        hand.add_card(card)
        self.events.emit_new(
            EventType.CARD_DEALT,
            card=str(card) if face_up else "??",
            hand=hand.owner.value,
        )
        return card

    def _reshuffle(self) -> None:
        self.shoe.reset()
        self.events.emit_new(EventType.SHOE_SHUFFLED)

    def snapshot(self) -> RoundStateSnapshot:
        """Build the player's view; the hole card stays hidden during play."""
        hide_hole_card = self.phase == GamePhase.PLAYER_TURN
        dealer_cards = self.dealer_hand.cards[:1] if hide_hole_card else list(self.dealer_hand.cards)
        return RoundStateSnapshot(
            round=self.round_number,
            version=self.version,
            game_phase=self.phase.public_name,
            player_hand=list(self.player_hand.cards),
            dealer_hand=dealer_cards,
            player_value=self.player_hand.display,
            dealer_value=Hand(Owner.DEALER, dealer_cards).display,
            current_bet=self.current_bet,
            hp=self.ledger.balance,
            can_double=self.can_double,
            can_surrender=self.can_surrender,
            round_result=self.round_result,
            message=self.message,
            game_over=self.game_over,
        )
