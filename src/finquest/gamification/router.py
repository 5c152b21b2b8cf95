"""Gamification API endpoints: progress, wallet and reward catalog."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from finquest.auth.dependencies import get_current_user_id
from finquest.container import Services
from finquest.dependencies import get_services
from finquest.gamification.catalog import RewardKind
from finquest.gamification.criteria import progress
from finquest.gamification.schemas import (
    CheckResponse,
    GrantErrorEntry,
    GrantResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    LevelUpRequest,
    LevelUpResponse,
    MyRewardsResponse,
    PartialPayoutEntry,
    ProfileResponse,
    RewardListResponse,
    RewardProgressResponse,
    RewardResponse,
    SpendRequest,
    StatsResponse,
    WalletResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# ── Public endpoints ──


@router.get("/rewards", response_model=RewardListResponse)
async def list_rewards(
    kind: RewardKind | None = Query(None),
    available_only: bool = Query(False),
    services: Services = Depends(get_services),
):
    """List active reward definitions, optionally only those available now."""
    now = datetime.now(timezone.utc)
    if available_only:
        rewards = await services.catalog.list_available(now, kind=kind)
    else:
        rewards = await services.catalog.find(kind=kind, active_only=True)
    return RewardListResponse(
        rewards=[RewardResponse.from_definition(r, now) for r in rewards],
        total=len(rewards),
    )


@router.get("/rewards/{reward_id}", response_model=RewardResponse)
async def get_reward(reward_id: str, services: Services = Depends(get_services)):
    """Get a single reward definition."""
    reward = await services.catalog.require(reward_id)
    return RewardResponse.from_definition(reward, datetime.now(timezone.utc))


@router.get("/gamification/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
):
    """Users ranked by level, then experience."""
    entries = await services.experience.leaderboard(limit=limit, offset=offset)
    return LeaderboardResponse(
        entries=[
            LeaderboardEntryResponse(rank=e.rank, user_id=e.user_id, level=e.level, experience=e.experience)
            for e in entries
        ],
        limit=limit,
        offset=offset,
    )


# ── Authenticated endpoints ──


@router.get("/gamification/profile", response_model=ProfileResponse)
async def get_profile(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Level, wallet, unlock counts and the stats the criteria are checked against."""
    state = await services.experience.get(user_id)
    wallet = await services.wallet.get(user_id)
    stats = await services.coordinator.snapshot(user_id)
    totals = await services.profiles.totals(user_id)
    badges = await services.unlocks.count(user_id, RewardKind.BADGE)

    return ProfileResponse(
        user_id=user_id,
        level=state.level,
        experience=state.experience,
        experience_to_next_level=state.experience_to_next_level,
        level_progress=state.level_progress,
        rank=await services.experience.rank(user_id),
        wallet=WalletResponse(
            balance=wallet.balance,
            total_earned=wallet.total_earned,
            total_spent=wallet.total_spent,
        ),
        achievements_unlocked=stats.achievement_count,
        badges_unlocked=badges,
        savings_progress=totals.savings_progress,
        stats=StatsResponse(
            achievement_count=stats.achievement_count,
            level=stats.level,
            coins_earned=stats.coins_earned,
            total_savings=stats.total_savings,
            streak_days=stats.streak_days,
            transaction_count=stats.transaction_count,
            total_amount=stats.total_amount,
        ),
    )


@router.post("/gamification/level-up", response_model=LevelUpResponse)
async def level_up(
    body: LevelUpRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Manual experience grant (testing aid). Level-ups pay bonus coins."""
    amount = body.amount if body and body.amount is not None else services.settings.manual_level_up_experience
    award = await services.coordinator.award_experience(user_id, amount)
    return LevelUpResponse(
        leveled_up=award.grant.leveled_up,
        new_level=award.grant.new_level,
        experience=award.grant.experience,
        experience_gained=award.grant.experience_gained,
        levels_gained=award.grant.levels_gained,
        bonus_coins=award.bonus_coins,
    )


@router.post("/gamification/check", response_model=CheckResponse)
async def check_rewards(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Grant every reward the user's current stats satisfy."""
    outcome = await services.coordinator.check_and_grant_all(user_id)
    return CheckResponse(
        granted=[GrantResponse.from_result(r) for r in outcome.granted],
        failures=[
            PartialPayoutEntry(
                reward_id=f.reward_id,
                coins_applied=f.coins_applied,
                experience_applied=f.experience_applied,
            )
            for f in outcome.failures
        ],
        errors=[GrantErrorEntry(reward_id=e.reward_id, error=e.error) for e in outcome.errors],
        total_coins=outcome.total_coins,
        total_experience=outcome.total_experience,
    )


@router.post("/wallet/spend", response_model=WalletResponse)
async def spend(
    body: SpendRequest,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Debit coins from the caller's wallet."""
    state = await services.wallet.spend_coins(user_id, body.amount, reason=body.reason)
    return WalletResponse(balance=state.balance, total_earned=state.total_earned, total_spent=state.total_spent)


@router.get("/rewards/{reward_id}/progress", response_model=RewardProgressResponse)
async def reward_progress(
    reward_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """How close the caller is to a reward's threshold."""
    reward = await services.catalog.require(reward_id)
    stats = await services.coordinator.snapshot(user_id)
    result = progress(reward, stats)
    return RewardProgressResponse(
        reward_id=reward.id,
        current=result.current,
        target=result.target,
        percentage=result.percentage,
        is_completed=result.is_completed,
        is_unlocked=await services.unlocks.has_unlocked(user_id, reward.id),
    )


@router.post("/rewards/{reward_id}/unlock", response_model=GrantResponse)
async def unlock_reward(
    reward_id: str,
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Explicitly unlock a reward. A repeat call reports already_unlocked."""
    result = await services.coordinator.grant_if_eligible(user_id, reward_id)
    return GrantResponse.from_result(result)


@router.get("/me/rewards", response_model=MyRewardsResponse)
async def my_rewards(
    user_id: str = Depends(get_current_user_id),
    services: Services = Depends(get_services),
):
    """Ids of the caller's unlocked achievements and badges."""
    achievements = await services.unlocks.unlocked_ids(user_id, RewardKind.ACHIEVEMENT)
    badges = await services.unlocks.unlocked_ids(user_id, RewardKind.BADGE)
    return MyRewardsResponse(achievements=sorted(achievements), badges=sorted(badges))
