"""Game API endpoints."""

from fastapi import APIRouter

from api.dependencies import Identity, Service
from api.schemas import ActionRequest, ActionResponse, GameStateResponse

router = APIRouter()


@router.post("/new")
async def new_game(identity: Identity, service: Service) -> GameStateResponse:
    """Start a new game with the starting HP."""
    return await service.new_game(identity)


@router.get("/state")
async def get_state(identity: Identity, service: Service) -> GameStateResponse:
    """Get current game state."""
    return await service.get_state(identity)


@router.post("/action")
async def player_action(
    request: ActionRequest,
    identity: Identity,
    service: Service,
) -> ActionResponse:
    """Execute a player action."""
    return await service.perform(
        identity,
        request.to_action(),
        expected_version=request.expected_version,
    )
