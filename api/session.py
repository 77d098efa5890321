"""Player record storage with Redis backend and in-memory default."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError, WatchError
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired

from api.serialization import deserialize_session, serialize_session
from config import config
from core.errors import ConcurrencyConflict, PersistenceError, ProfileError, ProfileNotFound
from core.session import PlayerSession

logger = logging.getLogger(__name__)


class IdentitySigner:
    """Sign and verify identity tokens using itsdangerous."""

    def __init__(self, secret_key: str | None = None) -> None:
        """Initialize the signer with a secret key."""
        self._secret_key = secret_key or config.security.secret_key
        self._serializer = URLSafeTimedSerializer(self._secret_key, salt="identity")

    def sign(self, identity: str) -> str:
        """Create a signed token for an identity."""
        return self._serializer.dumps(identity)

    def unsign(self, token: str, max_age: int | None = None) -> str | None:
        """
        Verify and extract the identity from a signed token.

        Args:
            token: The signed token to verify
            max_age: Maximum age in seconds (defaults to identity_ttl)

        Returns:
            The identity if valid, None otherwise
        """
        max_age = max_age or config.security.identity_ttl
        try:
            return self._serializer.loads(token, max_age=max_age)
        except (BadSignature, SignatureExpired):
            return None


# Global signer instance
_identity_signer: IdentitySigner | None = None


def get_identity_signer() -> IdentitySigner:
    """Get or create the identity signer."""
    global _identity_signer
    if _identity_signer is None:
        _identity_signer = IdentitySigner()
    return _identity_signer


@dataclass
class PlayerRecord:
    """Everything stored for one identity, written as a single unit."""

    session: PlayerSession
    game: dict[str, Any] | None = None
    last_action: dict[str, Any] | None = None
    revision: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "session": serialize_session(self.session),
            "game": self.game,
            "last_action": self.last_action,
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlayerRecord":
        return cls(
            session=deserialize_session(data["session"]),
            game=data.get("game"),
            last_action=data.get("last_action"),
            revision=data["revision"],
        )


class RecordStore(ABC):
    """Abstract key-value store with compare-and-set on a revision number."""

    @abstractmethod
    async def load(self, identity: str) -> dict[str, Any] | None:
        """Get the stored record."""
        ...

    @abstractmethod
    async def commit(
        self,
        identity: str,
        data: dict[str, Any],
        expected_revision: int | None,
    ) -> None:
        """
        Write a record if the stored revision still matches.

        Args:
            identity: Player identity
            data: Record to write, including its new revision
            expected_revision: Revision the caller read, or None for a new record

        Raises:
            ConcurrencyConflict: the record changed since it was read
            PersistenceError: the backend failed
        """
        ...


class InMemoryRecordStore(RecordStore):
    """In-memory store for local development and tests."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}

    async def load(self, identity: str) -> dict[str, Any] | None:
        """Get the stored record."""
        raw = self._records.get(identity)
        if raw is None:
            return None
        return json.loads(raw)

    async def commit(
        self,
        identity: str,
        data: dict[str, Any],
        expected_revision: int | None,
    ) -> None:
        """Write a record if the stored revision still matches."""
        raw = self._records.get(identity)
        current = json.loads(raw)["revision"] if raw is not None else None
        if current != expected_revision:
            raise ConcurrencyConflict(
                f"Player record changed: expected revision {expected_revision}, found {current}"
            )
        self._records[identity] = json.dumps(data)


class RedisRecordStore(RecordStore):
    """Redis-backed store; compare-and-set uses WATCH/MULTI."""

    def __init__(self, redis_client: redis.Redis, prefix: str | None = None) -> None:
        self._redis = redis_client
        self._prefix = prefix or config.store.key_prefix

    def _key(self, identity: str) -> str:
        """Get Redis key for a player."""
        return f"{self._prefix}{identity}"

    async def load(self, identity: str) -> dict[str, Any] | None:
        """Get the stored record."""
        try:
            data = await self._redis.get(self._key(identity))
        except RedisError as exc:
            raise PersistenceError("Could not read player record") from exc
        if data is None:
            return None
        return json.loads(data)

    async def commit(
        self,
        identity: str,
        data: dict[str, Any],
        expected_revision: int | None,
    ) -> None:
        """Write a record if the stored revision still matches."""
        key = self._key(identity)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                raw = await pipe.get(key)
                current = json.loads(raw)["revision"] if raw is not None else None
                if current != expected_revision:
                    raise ConcurrencyConflict(
                        f"Player record changed: expected revision {expected_revision}, found {current}"
                    )
                pipe.multi()
                pipe.set(key, json.dumps(data))
                await pipe.execute()
        except WatchError as exc:
            raise ConcurrencyConflict("Player record changed during commit") from exc
        except RedisError as exc:
            raise PersistenceError("Could not commit player record") from exc


class SessionStore:
    """
    Per-player aggregate state on top of a record store.

    Every method reads the whole record and writes it back in one
    compare-and-set, so HP, counters and the round never diverge.
    """

    def __init__(self, records: RecordStore, initial_hp: int | None = None) -> None:
        self._records = records
        self.initial_hp = initial_hp or config.game.initial_hp

    async def load_record(self, identity: str) -> PlayerRecord | None:
        """Read the full record of a player."""
        data = await self._records.load(identity)
        if data is None:
            return None
        return PlayerRecord.from_dict(data)

    async def commit_record(self, identity: str, record: PlayerRecord) -> PlayerRecord:
        """Write the record and bump its revision."""
        # Revision 0 is only held by a record that was never written.
        expected = record.revision if record.revision > 0 else None
        new_record = PlayerRecord(
            session=record.session,
            game=record.game,
            last_action=record.last_action,
            revision=record.revision + 1,
        )
        await self._records.commit(identity, new_record.to_dict(), expected)
        return new_record

    async def get(self, identity: str) -> PlayerSession | None:
        """Get the aggregate state of a player."""
        record = await self.load_record(identity)
        return record.session if record else None

    async def get_or_create_record(self, identity: str) -> PlayerRecord:
        """Read the record, or build an unsaved one with the starting HP."""
        record = await self.load_record(identity)
        if record is None:
            record = PlayerRecord(session=PlayerSession(identity=identity, hp=self.initial_hp))
        return record

    async def create(
        self,
        identity: str,
        username: str,
        avatar: str | None = None,
    ) -> PlayerSession:
        """Create the profile of a player."""
        record = await self.get_or_create_record(identity)
        if record.session.username is not None:
            raise ProfileError("Profile already exists")
        record.session.username = username
        record.session.avatar = avatar
        record.session.touch()
        record = await self.commit_record(identity, record)
        logger.info("Created profile %r for %s", username, identity)
        return record.session

    async def update_profile(
        self,
        identity: str,
        username: str,
        avatar: str | None = None,
    ) -> PlayerSession:
        """Change the username and avatar of an existing profile."""
        record = await self.load_record(identity)
        if record is None or record.session.username is None:
            raise ProfileNotFound("No profile to update")
        record.session.username = username
        record.session.avatar = avatar
        record.session.touch()
        record = await self.commit_record(identity, record)
        return record.session

    async def apply_round_result(self, identity: str, won: bool | None) -> PlayerSession:
        """Count a finished round for the player; ``None`` is a push."""
        record = await self.get_or_create_record(identity)
        record.session.record_result(won)
        record = await self.commit_record(identity, record)
        return record.session


# Global session store instance
_session_store: SessionStore | None = None


async def get_session_store() -> SessionStore:
    """Get or create the session store."""
    global _session_store

    if _session_store is not None:
        return _session_store

    if config.store.backend == "redis":
        redis_client = redis.from_url(config.redis.url)
        try:
            await redis_client.ping()
        except RedisError as exc:
            raise PersistenceError("Redis is not reachable") from exc
        _session_store = SessionStore(RedisRecordStore(redis_client))
        logger.info("Using Redis player store at %s:%d", config.redis.host, config.redis.port)
        return _session_store

    _session_store = SessionStore(InMemoryRecordStore())
    logger.info("Using in-memory player store")
    return _session_store


def extract_identity(token: str) -> str | None:
    """
    Extract the identity from a signed token.

    Args:
        token: The signed identity token

    Returns:
        The identity if valid, None otherwise
    """
    signer = get_identity_signer()
    return signer.unsign(token)
