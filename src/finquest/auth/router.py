"""Session router: /api/v1/auth/logout and /api/v1/auth/me."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from finquest.auth.dependencies import get_current_identity
from finquest.auth.guard import Identity
from finquest.auth.schemas import IdentityResponse, LogoutResponse
from finquest.container import Services
from finquest.dependencies import get_services

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    identity: Identity = Depends(get_current_identity),
    services: Services = Depends(get_services),
) -> LogoutResponse:
    """Revoke the bearer token that made this request."""
    expires_at = await services.revocations.revoke(identity.token, identity.user_id)
    logger.info("user_logged_out", user_id=identity.user_id)
    return LogoutResponse(revoked_until=expires_at)


@router.get("/me", response_model=IdentityResponse)
async def me(identity: Identity = Depends(get_current_identity)) -> IdentityResponse:
    """Return the verified identity claims."""
    return IdentityResponse(user_id=identity.user_id, role=identity.role, claims=identity.claims)
