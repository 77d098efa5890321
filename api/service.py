"""Game service: serializes actions per player and commits them atomically."""

import asyncio
import logging
import weakref
from typing import Callable

from api.schemas import ActionResponse, GameStateResponse
from api.serialization import deserialize_game, serialize_game
from api.session import SessionStore, get_session_store
from config import GameConfig, config
from core.cards import Shoe
from core.errors import ConcurrencyConflict, InvalidAction, ProfileNotFound, ShoeExhausted
from core.game import GameAction, GameEvent, GamePhase, PlaceBet, RoundStateMachine
from core.game.actions import action_to_dict
from core.session import PlayerSession, Profile

logger = logging.getLogger(__name__)


def _log_event(identity: str, event: GameEvent) -> None:
    logger.debug("[%s] %s", identity, event)


class GameService:
    """
    Entry point for everything a player can do.

    Each identity has its own lock, so a player's actions run one at a time
    while different players never wait on each other. The player record is
    re-read for every action; the restored table is discarded unless the
    commit succeeds, so a failed action leaves no trace.
    """

    def __init__(
        self,
        store: SessionStore,
        rules: GameConfig | None = None,
        shoe_factory: Callable[[], Shoe] | None = None,
    ) -> None:
        self.store = store
        self.rules = rules or config.game
        self._shoe_factory = shoe_factory or Shoe
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    def _lock(self, identity: str) -> asyncio.Lock:
        lock = self._locks.get(identity)
        if lock is None:
            lock = self._locks[identity] = asyncio.Lock()
        return lock

    async def new_game(self, identity: str) -> GameStateResponse:
        """
        Start over with the starting HP; lifetime counters are kept.

        Raises:
            InvalidAction: a bet is still in play and must be finished first
        """
        async with self._lock(identity):
            record = await self.store.get_or_create_record(identity)
            if record.game is not None and record.game["phase"] == GamePhase.PLAYER_TURN.value:
                raise InvalidAction("Finish the current round before starting a new game")
            game = RoundStateMachine(
                hp=self.rules.initial_hp,
                rules=self.rules,
                shoe=self._shoe_factory(),
            )
            record.session.hp = game.hp
            record.session.touch()
            record.game = serialize_game(game)
            record.last_action = None
            await self.store.commit_record(identity, record)
            logger.info("New game for %s with %d HP", identity, game.hp)
            return GameStateResponse.from_snapshot(game.snapshot())

    async def get_state(self, identity: str) -> GameStateResponse:
        """Return the current snapshot, starting a game if there is none."""
        record = await self.store.load_record(identity)
        if record is None or record.game is None:
            return await self.new_game(identity)
        game = deserialize_game(record.game, self.rules)
        return GameStateResponse.from_snapshot(game.snapshot())

    async def perform(
        self,
        identity: str,
        action: GameAction,
        expected_version: int | None = None,
    ) -> ActionResponse:
        """
        Apply one action to the player's table.

        Args:
            identity: Player identity
            action: The requested action
            expected_version: Snapshot version the client acted on, required
                for everything but a bet. A repeat of the last accepted action
                with the same version returns the original response instead of
                acting twice.

        Raises:
            ValidationError: the action is not legal now
            ConcurrencyConflict: the client acted on a stale snapshot
            ShoeExhausted: the round was voided and committed as such
            PersistenceError: nothing was committed
        """
        async with self._lock(identity):
            record = await self.store.load_record(identity)
            if record is None or record.game is None:
                raise InvalidAction("No game in progress; start a new game")

            action_data = action_to_dict(action)
            if expected_version is None and not isinstance(action, PlaceBet):
                raise InvalidAction(
                    f"{action_data['action']} needs the expected_version of the snapshot"
                )

            last = record.last_action
            if expected_version is not None:
                if (
                    last is not None
                    and last["version"] == expected_version
                    and last["action"] == action_data
                ):
                    logger.info(
                        "Replaying %s for %s at version %d",
                        action_data["action"],
                        identity,
                        expected_version,
                    )
                    response = ActionResponse.model_validate(last["response"])
                    return response.model_copy(update={"replayed": True})
                if expected_version != record.game["version"]:
                    logger.info(
                        "Stale %s from %s: version %d, current %d",
                        action_data["action"],
                        identity,
                        expected_version,
                        record.game["version"],
                    )
                    raise ConcurrencyConflict(
                        f"Game state is at version {record.game['version']}, "
                        f"action was based on version {expected_version}; refresh and retry"
                    )

            game = deserialize_game(record.game, self.rules)
            game.subscribe(lambda event: _log_event(identity, event))
            version_before = game.version

            try:
                outcome = game.apply(action)
            except ShoeExhausted:
                # The engine already voided the round; persist the refund.
                self._reconcile(record.session, game)
                record.game = serialize_game(game)
                record.last_action = None
                await self.store.commit_record(identity, record)
                raise

            self._reconcile(record.session, game)
            if outcome.settled is not None:
                record.session.record_result(outcome.settled.won)

            response = ActionResponse(
                game_state=GameStateResponse.from_snapshot(outcome.snapshot),
                hp_change=outcome.hp_change,
                hp=game.hp,
                message=outcome.message,
            )
            record.game = serialize_game(game)
            record.last_action = {
                "version": version_before,
                "action": action_data,
                "response": response.model_dump(mode="json"),
            }
            await self.store.commit_record(identity, record)

            logger.info(
                "%s: %s accepted, phase=%s, hp=%d (%+d)",
                identity,
                action_data["action"],
                game.phase.value,
                game.hp,
                outcome.hp_change,
            )
            return response

    @staticmethod
    def _reconcile(session: PlayerSession, game: RoundStateMachine) -> None:
        """Copy the table's committed HP into the player record."""
        session.hp = game.hp
        session.touch()

    # Profile operations

    @staticmethod
    def _public_profile(session: PlayerSession) -> Profile:
        profile = session.profile
        if profile is None:
            raise ProfileNotFound("Player has no profile")
        return profile

    async def get_profile(self, identity: str) -> Profile | None:
        """Get the public profile of a player."""
        session = await self.store.get(identity)
        return session.profile if session else None

    async def create_profile(
        self,
        identity: str,
        username: str,
        avatar: str | None = None,
    ) -> Profile:
        """Create the profile of a player."""
        async with self._lock(identity):
            session = await self.store.create(identity, username, avatar)
        return self._public_profile(session)

    async def update_profile(
        self,
        identity: str,
        username: str,
        avatar: str | None = None,
    ) -> Profile:
        """Change the username and avatar of a profile."""
        async with self._lock(identity):
            session = await self.store.update_profile(identity, username, avatar)
        return self._public_profile(session)

    async def update_game_stats(self, identity: str, won: bool | None) -> PlayerSession:
        """Count a finished round outside of the action path."""
        async with self._lock(identity):
            return await self.store.apply_round_result(identity, won)


# Global service instance
_game_service: GameService | None = None


async def get_game_service() -> GameService:
    """Get or create the game service."""
    global _game_service
    if _game_service is None:
        _game_service = GameService(await get_session_store())
    return _game_service
