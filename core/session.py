"""Per-player aggregate record: HP, win/loss counters and profile."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Profile:
    """Public profile of a player."""

    username: str
    avatar: str | None
    total_wins: int
    total_loses: int
    total_games: int
    registered_at: datetime
    last_active: datetime


@dataclass
class PlayerSession:
    """
    Everything kept about one identity between rounds.

    The record is never deleted; it is only mutated. ``username`` is set once
    the player creates a profile.
    """

    identity: str
    hp: int
    total_wins: int = 0
    total_loses: int = 0
    total_games: int = 0
    registered_at: datetime = field(default_factory=_now)
    last_active: datetime = field(default_factory=_now)
    username: str | None = None
    avatar: str | None = None

    def __post_init__(self) -> None:
        if self.hp < 0:
            raise ValueError("HP cannot be negative")
        if self.total_wins + self.total_loses > self.total_games:
            raise ValueError("Wins and losses cannot exceed games played")

    def touch(self) -> None:
        """Mark the player as active now."""
        self.last_active = _now()

    def record_result(self, won: bool | None) -> None:
        """Count a finished round; ``None`` is a push and counts only as a game."""
        if won is True:
            self.total_wins += 1
        elif won is False:
            self.total_loses += 1
        self.total_games += 1
        self.touch()

    @property
    def profile(self) -> Profile | None:
        """The public profile, if one was created."""
        if self.username is None:
            return None
        return Profile(
            username=self.username,
            avatar=self.avatar,
            total_wins=self.total_wins,
            total_loses=self.total_loses,
            total_games=self.total_games,
            registered_at=self.registered_at,
            last_active=self.last_active,
        )
