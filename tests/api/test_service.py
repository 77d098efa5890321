"""Tests for the game service: atomic commits, retries and stats."""

import asyncio
import gc

import pytest

from api.serialization import deserialize_game
from api.service import GameService
from api.session import InMemoryRecordStore, SessionStore
from core.cards import Card, Shoe
from core.errors import (
    ConcurrencyConflict,
    InvalidAction,
    PersistenceError,
    ProfileNotFound,
    ShoeExhausted,
)
from core.game import Hit, NextRound, PlaceBet, Stand, Surrender

PLAYER = "player-1"


class FlakyRecordStore(InMemoryRecordStore):
    """In-memory store whose next commits can be made to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.failures = 0

    async def commit(self, identity, data, expected_revision):
        if self.failures:
            self.failures -= 1
            raise PersistenceError("Could not commit player record")
        await super().commit(identity, data, expected_revision)


@pytest.fixture
def records():
    return FlakyRecordStore()


@pytest.fixture
def make_service(records, rules, make_shoe):
    """Build a service whose new games deal the given cards first."""

    def _make(*codes: str) -> GameService:
        return GameService(
            SessionStore(records, initial_hp=rules.initial_hp),
            rules=rules,
            shoe_factory=lambda: make_shoe(*codes),
        )

    return _make


class TestNewGame:
    """Tests for starting and reading games."""

    @pytest.mark.asyncio
    async def test_new_game(self, make_service):
        """Test that a new game starts in betting with full HP."""
        service = make_service()
        state = await service.new_game(PLAYER)

        assert state.game_phase == "betting"
        assert state.hp == 100
        assert state.version == 0
        assert state.player_hand == []

    @pytest.mark.asyncio
    async def test_get_state_starts_a_game(self, make_service):
        """Test that reading state without a game creates one."""
        service = make_service()
        state = await service.get_state(PLAYER)
        assert state.game_phase == "betting"
        assert (await service.store.get(PLAYER)).hp == 100

    @pytest.mark.asyncio
    async def test_new_game_restores_hp_keeps_stats(self, make_service):
        """Test that starting over resets HP but not lifetime counters."""
        service = make_service("10S", "10H", "7D", "9C")
        await service.new_game(PLAYER)
        await service.perform(PLAYER, PlaceBet(30))
        await service.perform(PLAYER, Stand(), expected_version=1)
        assert (await service.store.get(PLAYER)).hp == 70

        await service.new_game(PLAYER)
        session = await service.store.get(PLAYER)
        assert session.hp == 100
        assert session.total_games == 1
        assert session.total_loses == 1

    @pytest.mark.asyncio
    async def test_new_game_refused_mid_round(self, make_service, records):
        """Test that a staked hand cannot be abandoned by starting over."""
        service = make_service("10S", "10H", "6D", "10C")
        await service.new_game(PLAYER)
        await service.perform(PLAYER, PlaceBet(100))
        stored = await records.load(PLAYER)

        with pytest.raises(InvalidAction):
            await service.new_game(PLAYER)
        assert await records.load(PLAYER) == stored

        response = await service.perform(PLAYER, Stand(), expected_version=1)
        assert response.hp == 0
        await service.new_game(PLAYER)
        session = await service.store.get(PLAYER)
        assert session.hp == 100
        assert (session.total_loses, session.total_games) == (1, 1)

    @pytest.mark.asyncio
    async def test_action_without_game(self, make_service):
        """Test that acting before a game exists is refused."""
        with pytest.raises(InvalidAction):
            await make_service().perform(PLAYER, Hit(), expected_version=0)


class TestPerform:
    """Tests for applying actions through the service."""

    @pytest.mark.asyncio
    async def test_blackjack_commits_hp_and_stats(self, make_service):
        """Test that a settled round updates HP and counters together."""
        service = make_service("AS", "5H", "KD", "9C")
        await service.new_game(PLAYER)
        response = await service.perform(PLAYER, PlaceBet(10))

        assert response.success
        assert response.hp_change == 15
        assert response.hp == 115
        assert response.game_state.round_result == "blackjack"
        assert response.game_state.game_phase == "result"

        session = await service.store.get(PLAYER)
        assert session.hp == 115
        assert session.total_wins == 1
        assert session.total_games == 1

    @pytest.mark.asyncio
    async def test_hp_only_changes_at_settlement(self, make_service):
        """Test that betting reports no HP change."""
        service = make_service("9H", "10S", "7D", "8C")
        await service.new_game(PLAYER)
        response = await service.perform(PLAYER, PlaceBet(10))

        assert response.hp_change == 0
        assert response.hp == 100
        assert response.game_state.current_bet == 10
        assert len(response.game_state.dealer_hand) == 1
        assert (await service.store.get(PLAYER)).hp == 100

    @pytest.mark.asyncio
    async def test_push_counts_only_as_game(self, make_service):
        """Test that a push is neither a win nor a loss."""
        service = make_service("10S", "10H", "9D", "9C")
        await service.new_game(PLAYER)
        await service.perform(PLAYER, PlaceBet(10))
        response = await service.perform(PLAYER, Stand(), expected_version=1)

        assert response.hp_change == 0
        session = await service.store.get(PLAYER)
        assert (session.total_wins, session.total_loses, session.total_games) == (0, 0, 1)

    @pytest.mark.asyncio
    async def test_surrender_counts_as_loss(self, make_service):
        """Test that surrendering half the stake is a loss."""
        service = make_service("10S", "10H", "6D", "7C")
        await service.new_game(PLAYER)
        await service.perform(PLAYER, PlaceBet(20))
        response = await service.perform(PLAYER, Surrender(), expected_version=1)

        assert response.hp == 90
        session = await service.store.get(PLAYER)
        assert session.total_loses == 1

    @pytest.mark.asyncio
    async def test_rejected_action_changes_nothing(self, make_service, records):
        """Test that an illegal action leaves the record as it was."""
        service = make_service("9H", "10S", "7D", "8C")
        await service.new_game(PLAYER)
        before = await records.load(PLAYER)

        with pytest.raises(InvalidAction):
            await service.perform(PLAYER, Hit(), expected_version=0)
        assert await records.load(PLAYER) == before

    @pytest.mark.asyncio
    async def test_multi_round_hp_carries_over(self, make_service):
        """Test that HP won in one round is the bankroll of the next."""
        service = make_service("AS", "5H", "KD", "9C")
        await service.new_game(PLAYER)
        await service.perform(PLAYER, PlaceBet(10))
        state = (await service.perform(PLAYER, NextRound(), expected_version=1)).game_state

        assert state.game_phase == "betting"
        assert state.round == 2
        assert state.hp == 115


class TestRetries:
    """Tests for duplicate and stale submissions."""

    @pytest.mark.asyncio
    async def test_duplicate_hit_is_replayed(self, make_service, records):
        """A retried hit after a bust returns the first result and draws nothing."""
        service = make_service("10S", "9H", "6D", "8C", "7H")
        await service.new_game(PLAYER)
        bet = await service.perform(PLAYER, PlaceBet(10), expected_version=0)
        version = bet.game_state.version

        first = await service.perform(PLAYER, Hit(), expected_version=version)
        stored = await records.load(PLAYER)
        second = await service.perform(PLAYER, Hit(), expected_version=version)

        assert first.hp == 90
        assert not first.replayed
        assert second.replayed
        assert second.hp == first.hp
        assert second.game_state == first.game_state
        assert await records.load(PLAYER) == stored

    @pytest.mark.asyncio
    async def test_concurrent_duplicates_apply_once(self, make_service):
        """Test that two identical hits sent together apply once."""
        service = make_service("10S", "9H", "6D", "8C", "7H")
        await service.new_game(PLAYER)
        bet = await service.perform(PLAYER, PlaceBet(10))
        version = bet.game_state.version

        first, second = await asyncio.gather(
            service.perform(PLAYER, Hit(), expected_version=version),
            service.perform(PLAYER, Hit(), expected_version=version),
        )

        assert sorted([first.replayed, second.replayed]) == [False, True]
        session = await service.store.get(PLAYER)
        assert session.hp == 90
        assert session.total_games == 1

    @pytest.mark.asyncio
    async def test_stale_version_conflicts(self, make_service):
        """Test that a different action on an old snapshot is refused."""
        service = make_service("2S", "10H", "3D", "7C", "4H", "5D")
        await service.new_game(PLAYER)
        await service.perform(PLAYER, PlaceBet(10))
        await service.perform(PLAYER, Hit(), expected_version=1)

        with pytest.raises(ConcurrencyConflict):
            await service.perform(PLAYER, Stand(), expected_version=1)

    @pytest.mark.asyncio
    async def test_unversioned_hit_refused(self, make_service, records):
        """Test that a hit without a snapshot version cannot draw a card."""
        service = make_service("2S", "10H", "3D", "7C", "4H", "5D")
        await service.new_game(PLAYER)
        await service.perform(PLAYER, PlaceBet(10))
        await service.perform(PLAYER, Hit(), expected_version=1)
        stored = await records.load(PLAYER)

        with pytest.raises(InvalidAction):
            await service.perform(PLAYER, Hit())
        assert await records.load(PLAYER) == stored
        state = await service.get_state(PLAYER)
        assert len(state.player_hand) == 3


class TestFailures:
    """Tests for storage failures and exhausted shoes."""

    @pytest.mark.asyncio
    async def test_failed_commit_leaves_no_trace(self, make_service, records):
        """Test that a failed write can be retried from the same state."""
        service = make_service("AS", "5H", "KD", "9C")
        await service.new_game(PLAYER)
        before = await records.load(PLAYER)

        records.failures = 1
        with pytest.raises(PersistenceError):
            await service.perform(PLAYER, PlaceBet(10))
        assert await records.load(PLAYER) == before

        response = await service.perform(PLAYER, PlaceBet(10))
        assert response.hp == 115
        session = await service.store.get(PLAYER)
        assert session.hp == 115
        assert session.total_games == 1

    @pytest.mark.asyncio
    async def test_exhausted_shoe_is_committed(self, rules, records):
        """Test that a voided round refunds the stake in storage."""
        short_shoe = lambda: Shoe.from_cards([Card.from_string(c) for c in ("10S", "9H", "6D")])
        service = GameService(SessionStore(records), rules=rules, shoe_factory=short_shoe)
        await service.new_game(PLAYER)

        with pytest.raises(ShoeExhausted):
            await service.perform(PLAYER, PlaceBet(10))

        record = await service.store.load_record(PLAYER)
        game = deserialize_game(record.game, rules)
        assert game.phase.value == "betting"
        assert game.ledger.escrowed == 0
        assert game.shoe.cards_remaining == 52
        assert game.version == 1
        assert record.session.hp == 100
        assert record.session.total_games == 0


class TestProfiles:
    """Tests for profile operations."""

    @pytest.mark.asyncio
    async def test_profile_flow(self, make_service):
        """Test creating, reading and updating a profile."""
        service = make_service()
        assert await service.get_profile(PLAYER) is None

        profile = await service.create_profile(PLAYER, "alice")
        assert profile.username == "alice"
        assert profile.total_games == 0

        profile = await service.update_profile(PLAYER, "alicia", "pic")
        assert (await service.get_profile(PLAYER)).username == "alicia"

    @pytest.mark.asyncio
    async def test_profile_shows_round_results(self, make_service):
        """Test that settled rounds appear in the profile counters."""
        service = make_service("AS", "5H", "KD", "9C")
        await service.create_profile(PLAYER, "alice")
        await service.new_game(PLAYER)
        await service.perform(PLAYER, PlaceBet(10))

        profile = await service.get_profile(PLAYER)
        assert profile.total_wins == 1
        assert profile.total_games == 1

    @pytest.mark.asyncio
    async def test_update_game_stats(self, make_service):
        """Test counting a result outside the action path."""
        service = make_service()
        session = await service.update_game_stats(PLAYER, False)
        assert session.total_loses == 1
        assert session.total_games == 1

    @pytest.mark.asyncio
    async def test_update_profile_before_create(self, make_service):
        """Test that there is no profile to update until one is created."""
        service = make_service()
        with pytest.raises(ProfileNotFound):
            await service.update_profile(PLAYER, "alice")
        assert await service.get_profile(PLAYER) is None


class TestLocks:
    """Tests for the per-player locks."""

    @pytest.mark.asyncio
    async def test_idle_locks_are_released(self, make_service):
        """Test that locks are not kept for players who are not acting."""
        service = make_service()
        for n in range(20):
            await service.new_game(f"player-{n}")
        gc.collect()
        assert len(service._locks) == 0

    @pytest.mark.asyncio
    async def test_waiting_actions_share_a_lock(self, make_service):
        """Test that a player's queued actions use one lock while it is held."""
        service = make_service()
        lock = service._lock(PLAYER)
        assert service._lock(PLAYER) is lock
        assert service._lock("someone-else") is not lock
