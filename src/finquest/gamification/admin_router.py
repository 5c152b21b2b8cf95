"""Admin reward catalog endpoints (requires the admin role claim)."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, Response

from finquest.auth.dependencies import require_admin
from finquest.auth.guard import Identity
from finquest.container import Services
from finquest.dependencies import get_services
from finquest.gamification.schemas import (
    CatalogStatsResponse,
    RewardCreateRequest,
    RewardResponse,
    RewardUpdateRequest,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/admin/rewards", tags=["Admin"])

# Columns that may be cleared with an explicit null
_NULLABLE_FIELDS = frozenset({
    "criteria_description",
    "reward_coins",
    "reward_experience",
    "available_from",
    "available_until",
})


@router.get("/stats", response_model=CatalogStatsResponse)
async def catalog_stats(
    _admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    stats = await services.catalog.stats()
    return CatalogStatsResponse(
        total=stats.total,
        active=stats.active,
        by_category=stats.by_category,
        by_rarity=stats.by_rarity,
    )


@router.post("", response_model=RewardResponse, status_code=201)
async def create_reward(
    body: RewardCreateRequest,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    """Create an achievement or badge definition."""
    reward = await services.catalog.create(body.to_definition())
    logger.info("reward_created", reward_id=reward.id, admin=admin.user_id)
    return RewardResponse.from_definition(reward, datetime.now(timezone.utc))


@router.patch("/{reward_id}", response_model=RewardResponse)
async def update_reward(
    reward_id: str,
    body: RewardUpdateRequest,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    changes = {
        name: value
        for name, value in body.model_dump(exclude_unset=True).items()
        if value is not None or name in _NULLABLE_FIELDS
    }
    reward = await services.catalog.update(reward_id, changes)
    logger.info("reward_updated", reward_id=reward_id, fields=sorted(changes), admin=admin.user_id)
    return RewardResponse.from_definition(reward, datetime.now(timezone.utc))


@router.delete("/{reward_id}", status_code=204)
async def delete_reward(
    reward_id: str,
    admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
) -> Response:
    """Delete a definition. Users keep rewards they already unlocked."""
    await services.catalog.delete(reward_id)
    logger.info("reward_deleted", reward_id=reward_id, admin=admin.user_id)
    return Response(status_code=204)


@router.post("/{reward_id}/activate", response_model=RewardResponse)
async def activate_reward(
    reward_id: str,
    _admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    reward = await services.catalog.set_active(reward_id, True)
    return RewardResponse.from_definition(reward, datetime.now(timezone.utc))


@router.post("/{reward_id}/deactivate", response_model=RewardResponse)
async def deactivate_reward(
    reward_id: str,
    _admin: Identity = Depends(require_admin),
    services: Services = Depends(get_services),
):
    reward = await services.catalog.set_active(reward_id, False)
    return RewardResponse.from_definition(reward, datetime.now(timezone.utc))
