"""FastAPI authentication dependencies."""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from finquest.auth.errors import Unauthorized
from finquest.auth.guard import Identity
from finquest.container import Services
from finquest.dependencies import get_services
from finquest.gamification.errors import UserNotFound
from finquest.users.service import provision_user


async def get_current_identity(
    request: Request,
    services: Services = Depends(get_services),
) -> Identity:
    """
    Run the session guard on the Authorization header.

    Raises 401 when the token is missing, revoked or fails verification.
    """
    try:
        return await services.guard.authenticate(request.headers.get("Authorization"))
    except Unauthorized as e:
        raise HTTPException(
            status_code=401,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_current_user_id(
    identity: Identity = Depends(get_current_identity),
    services: Services = Depends(get_services),
) -> str:
    """Authenticated user id. First-seen users get their records provisioned."""
    try:
        await services.experience.get(identity.user_id)
    except UserNotFound:
        await provision_user(
            identity.user_id,
            experience=services.experience,
            wallet=services.wallet,
            profiles=services.profiles,
        )
    return identity.user_id


async def require_admin(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """Same as get_current_identity but requires the `admin` role claim."""
    if identity.role != "admin":
        raise HTTPException(status_code=403, detail="Admin role required")
    return identity
