"""Conversion between engine objects and the JSON stored per player."""

from datetime import datetime
from random import Random
from typing import Any

from config import GameConfig
from core.cards import Card, Rank, Shoe, Suit
from core.game import GamePhase, RoundResult, RoundStateMachine
from core.game.ledger import WagerLedger
from core.hand import Hand, Owner
from core.session import PlayerSession


def serialize_card(card: Card) -> dict[str, Any]:
    """Serialize a card to a dict."""
    return {"rank": card.rank.value, "suit": card.suit.value}


def deserialize_card(data: dict[str, Any]) -> Card:
    """Deserialize a card from a dict."""
    return Card(Rank(data["rank"]), Suit(data["suit"]))


def serialize_hand(hand: Hand) -> list[dict[str, Any]]:
    """Serialize a hand; its value is recomputed on load, never stored."""
    return [serialize_card(c) for c in hand.cards]


def deserialize_hand(data: list[dict[str, Any]], owner: Owner) -> Hand:
    """Deserialize a hand from a list of cards."""
    return Hand(owner, [deserialize_card(c) for c in data])


def serialize_game(game: RoundStateMachine) -> dict[str, Any]:
    """Serialize a table for the player record."""
    return {
        "phase": game.phase.value,
        "hp": game.ledger.balance,
        "escrowed": game.ledger.escrowed,
        "current_bet": game.current_bet,
        "round": game.round_number,
        "version": game.version,
        "round_result": game.round_result.value if game.round_result else None,
        "message": game.message,
        "shoe_cards": [serialize_card(c) for c in game.shoe.cards],
        "shoe_cursor": game.shoe.cursor,
        "player_hand": serialize_hand(game.player_hand),
        "dealer_hand": serialize_hand(game.dealer_hand),
    }


def deserialize_game(
    data: dict[str, Any],
    rules: GameConfig | None = None,
    rng: Random | None = None,
) -> RoundStateMachine:
    """Restore a table from the player record."""
    shoe = Shoe.from_cards(
        [deserialize_card(c) for c in data["shoe_cards"]],
        cursor=data["shoe_cursor"],
        rng=rng,
    )
    game = RoundStateMachine(
        hp=data["hp"],
        rules=rules,
        shoe=shoe,
        phase=GamePhase(data["phase"]),
    )
    game.ledger = WagerLedger(
        data["hp"],
        escrowed=data["escrowed"],
        blackjack_payout=game.rules.blackjack_payout,
    )
    game.current_bet = data["current_bet"]
    game.round_number = data["round"]
    game.version = data["version"]
    game.round_result = RoundResult(data["round_result"]) if data["round_result"] else None
    game.message = data["message"]
    game.player_hand = deserialize_hand(data["player_hand"], Owner.PLAYER)
    game.dealer_hand = deserialize_hand(data["dealer_hand"], Owner.DEALER)
    return game


def serialize_session(session: PlayerSession) -> dict[str, Any]:
    """Serialize the aggregate player record."""
    return {
        "identity": session.identity,
        "hp": session.hp,
        "total_wins": session.total_wins,
        "total_loses": session.total_loses,
        "total_games": session.total_games,
        "registered_at": session.registered_at.isoformat(),
        "last_active": session.last_active.isoformat(),
        "username": session.username,
        "avatar": session.avatar,
    }


def deserialize_session(data: dict[str, Any]) -> PlayerSession:
    """Deserialize the aggregate player record."""
    return PlayerSession(
        identity=data["identity"],
        hp=data["hp"],
        total_wins=data["total_wins"],
        total_loses=data["total_loses"],
        total_games=data["total_games"],
        registered_at=datetime.fromisoformat(data["registered_at"]),
        last_active=datetime.fromisoformat(data["last_active"]),
        username=data.get("username"),
        avatar=data.get("avatar"),
    )
