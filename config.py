"""Configuration management with environment variable support."""

import os
import secrets
from dataclasses import dataclass, field
from typing import Literal


def _parse_cors_origins() -> list[str]:
    """Parse CORS_ORIGINS environment variable."""
    origins = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    return [o.strip() for o in origins.split(",") if o.strip()]


def _parse_reshuffle_policy() -> Literal["per_round", "continuous"]:
    """Parse RESHUFFLE_POLICY environment variable."""
    policy = os.getenv("RESHUFFLE_POLICY", "per_round").strip().lower()
    if policy not in ("per_round", "continuous"):
        raise ValueError(f"Unknown reshuffle policy: {policy}")
    return policy  # type: ignore[return-value]


@dataclass(frozen=True)
class CORSConfig:
    """CORS configuration."""

    allowed_origins: list[str] = field(default_factory=_parse_cors_origins)
    allow_credentials: bool = True
    allow_methods: list[str] = field(default_factory=lambda: ["*"])
    allow_headers: list[str] = field(default_factory=lambda: ["*"])


@dataclass(frozen=True)
class RateLimitConfig:
    """Rate limiting configuration."""

    enabled: bool = field(
        default_factory=lambda: os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
    )
    requests_per_minute: int = field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_RPM", "120"))
    )


@dataclass(frozen=True)
class SecurityConfig:
    """Identity token verification configuration."""

    secret_key: str = field(
        default_factory=lambda: os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
    )
    identity_ttl: int = field(
        default_factory=lambda: int(os.getenv("IDENTITY_TTL", "86400"))
    )


@dataclass(frozen=True)
class RedisConfig:
    """Redis connection configuration."""

    host: str = field(default_factory=lambda: os.getenv("REDIS_HOST", "localhost"))
    port: int = field(default_factory=lambda: int(os.getenv("REDIS_PORT", "6379")))
    db: int = field(default_factory=lambda: int(os.getenv("REDIS_DB", "0")))
    password: str | None = field(default_factory=lambda: os.getenv("REDIS_PASSWORD"))

    @property
    def url(self) -> str:
        """Build Redis connection URL."""
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


@dataclass(frozen=True)
class StoreConfig:
    """Player record storage configuration."""

    backend: Literal["memory", "redis"] = field(
        default_factory=lambda: os.getenv("STORE_BACKEND", "memory").lower()  # type: ignore[return-value]
    )
    key_prefix: str = "hp-blackjack:player:"


@dataclass(frozen=True)
class GameConfig:
    """Table rules for the HP game."""

    initial_hp: int = 100
    blackjack_payout: float = 1.5
    dealer_stands_on: int = 17
    reshuffle_policy: Literal["per_round", "continuous"] = field(
        default_factory=_parse_reshuffle_policy
    )
    reshuffle_threshold: int = 15

    def __post_init__(self) -> None:
        """Validate rule combinations."""
        if self.initial_hp < 1:
            raise ValueError("initial_hp must be at least 1")
        if self.blackjack_payout < 1.0:
            raise ValueError("blackjack_payout must be at least 1.0")
        if not 2 <= self.dealer_stands_on <= 21:
            raise ValueError("dealer_stands_on must be between 2 and 21")
        if not 4 <= self.reshuffle_threshold <= 52:
            raise ValueError("reshuffle_threshold must be between 4 and 52")


@dataclass(frozen=True)
class AppConfig:
    """Application configuration."""

    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())

    redis: RedisConfig = field(default_factory=RedisConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    game: GameConfig = field(default_factory=GameConfig)
    cors: CORSConfig = field(default_factory=CORSConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)


# Global configuration instance
config = AppConfig()
