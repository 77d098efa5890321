"""Exception hierarchy for the HP blackjack engine."""


class BlackjackError(Exception):
    """Base class for all engine and service errors."""

    code = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BlackjackError):
    """A request was rejected before any state changed."""

    code = "validation_error"


class InvalidAction(ValidationError):
    """The action is not legal in the current phase or hand."""

    code = "invalid_action"


class InsufficientHP(ValidationError):
    """A wager exceeds the available HP."""

    code = "insufficient_hp"

    def __init__(self, required: int, available: int) -> None:
        super().__init__(f"Not enough HP: {required} required, {available} available")
        self.required = required
        self.available = available


class ShoeExhausted(BlackjackError):
    """More cards were requested than the shoe holds."""

    code = "shoe_exhausted"

    def __init__(self) -> None:
        super().__init__("The shoe is exhausted; the round has been reset")


class PersistenceError(BlackjackError):
    """The player record could not be read or committed."""

    code = "persistence_error"


class ConcurrencyConflict(BlackjackError):
    """The action was based on a stale snapshot of the game."""

    code = "concurrency_conflict"


class ProfileError(ValidationError):
    """A profile operation is not possible for this player."""

    code = "profile_error"


class ProfileNotFound(ProfileError):
    """The player has not created a profile yet."""

    code = "profile_not_found"
