"""Tests for HP escrow and payout arithmetic."""

import pytest

from core.errors import InsufficientHP, InvalidAction, ValidationError
from core.game import RoundResult, WagerLedger, payout_delta


class TestPayoutDelta:
    """Tests for the outcome table."""

    @pytest.mark.parametrize(
        "outcome, bet, expected",
        [
            (RoundResult.WIN, 10, 10),
            (RoundResult.BLACKJACK, 10, 15),
            (RoundResult.BLACKJACK, 15, 22),
            (RoundResult.BLACKJACK, 1, 1),
            (RoundResult.LOSE, 10, -10),
            (RoundResult.BUST, 25, -25),
            (RoundResult.PUSH, 40, 0),
            (RoundResult.SURRENDER, 20, -10),
            (RoundResult.SURRENDER, 15, -7),
            (RoundResult.SURRENDER, 1, 0),
        ],
    )
    def test_outcome_table(self, outcome, bet, expected):
        """Test each outcome, rounding fractions down."""
        assert payout_delta(outcome, bet) == expected

    def test_custom_blackjack_payout(self):
        """Test a 6:5 table."""
        assert payout_delta(RoundResult.BLACKJACK, 10, blackjack_payout=1.2) == 12


class TestWagerLedger:
    """Tests for WagerLedger."""

    def test_escrow_reduces_available_only(self):
        """Test that a stake is held without touching the balance."""
        ledger = WagerLedger(100)
        ledger.escrow(30)
        assert ledger.balance == 100
        assert ledger.escrowed == 30
        assert ledger.available == 70

    def test_escrow_whole_balance(self):
        """Test that the full balance can be staked."""
        ledger = WagerLedger(50)
        ledger.escrow(50)
        assert ledger.available == 0

    def test_escrow_more_than_available(self):
        """Test that an uncovered stake is refused and nothing changes."""
        ledger = WagerLedger(100)
        ledger.escrow(60)
        with pytest.raises(InsufficientHP) as exc_info:
            ledger.escrow(41)
        assert exc_info.value.available == 40
        assert ledger.escrowed == 60

    def test_escrow_non_positive(self):
        """Test that zero and negative stakes are refused."""
        ledger = WagerLedger(100)
        with pytest.raises(InvalidAction):
            ledger.escrow(0)
        with pytest.raises(ValidationError):
            ledger.escrow(-5)
        assert ledger.escrowed == 0

    def test_settle_win(self):
        """Test that a win adds the stake and releases escrow."""
        ledger = WagerLedger(100)
        ledger.escrow(10)
        assert ledger.settle(RoundResult.WIN) == 10
        assert ledger.balance == 110
        assert ledger.escrowed == 0

    def test_settle_loss(self):
        """Test that a loss removes the stake."""
        ledger = WagerLedger(100)
        ledger.escrow(100)
        assert ledger.settle(RoundResult.LOSE) == -100
        assert ledger.balance == 0

    def test_settle_doubled_stake(self):
        """Test settling after the stake was raised."""
        ledger = WagerLedger(100)
        ledger.escrow(10)
        ledger.escrow(10)
        assert ledger.settle(RoundResult.WIN) == 20
        assert ledger.balance == 120

    def test_refund(self):
        """Test releasing escrow without a result."""
        ledger = WagerLedger(100)
        ledger.escrow(25)
        ledger.refund()
        assert ledger.balance == 100
        assert ledger.available == 100

    def test_rejects_negative_balance(self):
        """Test that a ledger cannot start below zero."""
        with pytest.raises(ValueError):
            WagerLedger(-1)
