"""FastAPI application entry point."""

import logging

import uvicorn

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from api.routes import game, profile
from api.schemas import ErrorResponse
from config import config
from core.errors import (
    BlackjackError,
    ConcurrencyConflict,
    PersistenceError,
    ProfileNotFound,
    ShoeExhausted,
    ValidationError,
)
from logging_utils import setup_logging

setup_logging()
logger = logging.getLogger(__name__)

# Initialize rate limiter
limiter = Limiter(
    key_func=get_remote_address,
    enabled=config.rate_limit.enabled,
    default_limits=[f"{config.rate_limit.requests_per_minute}/minute"],
)

ERROR_STATUS: list[tuple[type[BlackjackError], int]] = [
    (ProfileNotFound, 404),
    (ValidationError, 400),
    (ConcurrencyConflict, 409),
    (PersistenceError, 503),
    (ShoeExhausted, 500),
]


def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Handle rate limit exceeded errors."""
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}"},
    )


def _blackjack_error_handler(request: Request, exc: BlackjackError) -> JSONResponse:
    """Render engine and service errors as a failed action."""
    status_code = next(
        (status for error_type, status in ERROR_STATUS if isinstance(exc, error_type)),
        500,
    )
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    body = ErrorResponse(error=exc.code, message=exc.message)
    return JSONResponse(status_code=status_code, content=body.model_dump())


app = FastAPI(
    title="HP Blackjack",
    description="Authoritative blackjack round engine wagering hit points",
    version="0.1.0",
)

# Add rate limiter to app state and exception handlers
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
app.add_exception_handler(BlackjackError, _blackjack_error_handler)  # type: ignore[arg-type]

# CORS middleware with configurable origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors.allowed_origins,
    allow_credentials=config.cors.allow_credentials,
    allow_methods=config.cors.allow_methods,
    allow_headers=config.cors.allow_headers,
)


@app.get("/api/health")
@limiter.limit(f"{config.rate_limit.requests_per_minute}/minute")
async def health_check(request: Request) -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(game.router, prefix="/api/game", tags=["game"])
app.include_router(profile.router, prefix="/api/profile", tags=["profile"])


def run() -> None:
    """Serve the API with uvicorn."""
    uvicorn.run("api.main:app", host=config.host, port=config.port, reload=config.debug)
