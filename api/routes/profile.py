"""Profile API endpoints."""

from fastapi import APIRouter, HTTPException

from api.dependencies import Identity, Service
from api.schemas import ProfileRequest, ProfileResponse

router = APIRouter()


@router.get("")
async def get_profile(identity: Identity, service: Service) -> ProfileResponse:
    """Get the caller's profile."""
    profile = await service.get_profile(identity)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return ProfileResponse.from_profile(profile)


@router.post("", status_code=201)
async def create_profile(
    request: ProfileRequest,
    identity: Identity,
    service: Service,
) -> ProfileResponse:
    """Create the caller's profile."""
    profile = await service.create_profile(identity, request.username, request.avatar)
    return ProfileResponse.from_profile(profile)


@router.put("")
async def update_profile(
    request: ProfileRequest,
    identity: Identity,
    service: Service,
) -> ProfileResponse:
    """Update the caller's username and avatar."""
    profile = await service.update_profile(identity, request.username, request.avatar)
    return ProfileResponse.from_profile(profile)
