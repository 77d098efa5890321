"""FastAPI dependencies shared by the routers."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException

from api.service import GameService, get_game_service
from api.session import extract_identity


async def require_identity(
    token: Annotated[str | None, Header(alias="X-Identity")] = None,
) -> str:
    """Resolve the signed identity token issued by the auth provider."""
    if not token:
        raise HTTPException(status_code=401, detail="Missing identity token")
    identity = extract_identity(token)
    if identity is None:
        raise HTTPException(status_code=401, detail="Invalid or expired identity token")
    return identity


Identity = Annotated[str, Depends(require_identity)]
Service = Annotated[GameService, Depends(get_game_service)]
