"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from finquest.gamification.catalog import Rarity, RewardDefinition, RewardKind
from finquest.gamification.coordinator import GrantResult


# --- Rewards ---


class RewardResponse(BaseModel):
    id: str
    kind: RewardKind
    name: str
    description: str
    icon: str
    category: str
    rarity: Rarity
    rarity_color: str
    criteria_kind: str
    criteria_threshold: float
    criteria_description: str | None = None
    reward_coins: int
    reward_experience: int
    is_active: bool
    is_limited: bool
    available_from: datetime | None = None
    available_until: datetime | None = None
    is_available: bool

    @classmethod
    def from_definition(cls, reward: RewardDefinition, now: datetime) -> RewardResponse:
        payout = reward.payout()
        return cls(
            id=reward.id,
            kind=reward.kind,
            name=reward.name,
            description=reward.description,
            icon=reward.icon,
            category=reward.category,
            rarity=reward.rarity,
            rarity_color=reward.rarity.color,
            criteria_kind=reward.criteria_kind,
            criteria_threshold=reward.criteria_threshold,
            criteria_description=reward.criteria_description,
            reward_coins=payout.coins,
            reward_experience=payout.experience,
            is_active=reward.is_active,
            is_limited=reward.is_limited,
            available_from=reward.available_from,
            available_until=reward.available_until,
            is_available=reward.is_available(now),
        )


class RewardListResponse(BaseModel):
    rewards: list[RewardResponse]
    total: int


class RewardProgressResponse(BaseModel):
    reward_id: str
    current: float
    target: float
    percentage: int
    is_completed: bool
    is_unlocked: bool


class MyRewardsResponse(BaseModel):
    achievements: list[str]
    badges: list[str]


class GrantResponse(BaseModel):
    reward_id: str
    status: str
    granted: bool
    coins_awarded: int = 0
    experience_awarded: int = 0
    leveled_up: bool = False
    new_level: int | None = None

    @classmethod
    def from_result(cls, result: GrantResult) -> GrantResponse:
        return cls(
            reward_id=result.reward.id,
            status=result.status.value,
            granted=result.granted,
            coins_awarded=result.coins_awarded,
            experience_awarded=result.experience_awarded,
            leveled_up=result.leveled_up,
            new_level=result.new_level,
        )


class PartialPayoutEntry(BaseModel):
    reward_id: str
    coins_applied: int
    experience_applied: int


class GrantErrorEntry(BaseModel):
    reward_id: str
    error: str


class CheckResponse(BaseModel):
    granted: list[GrantResponse]
    failures: list[PartialPayoutEntry] = []
    errors: list[GrantErrorEntry] = []
    total_coins: int
    total_experience: int


# --- Progress / wallet ---


class WalletResponse(BaseModel):
    balance: int
    total_earned: int
    total_spent: int


class StatsResponse(BaseModel):
    achievement_count: int
    level: int
    coins_earned: int
    total_savings: float
    streak_days: int
    transaction_count: int
    total_amount: float


class ProfileResponse(BaseModel):
    user_id: str
    level: int
    experience: int
    experience_to_next_level: int
    level_progress: int
    rank: int
    wallet: WalletResponse
    achievements_unlocked: int
    badges_unlocked: int
    savings_progress: int
    stats: StatsResponse


class LevelUpRequest(BaseModel):
    amount: int | None = None


class LevelUpResponse(BaseModel):
    leveled_up: bool
    new_level: int
    experience: int
    experience_gained: int
    levels_gained: int
    bonus_coins: int


class SpendRequest(BaseModel):
    amount: int
    reason: str = ""


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: str
    level: int
    experience: int


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]
    limit: int
    offset: int


# --- Admin ---


def _as_utc(value: datetime | None) -> datetime | None:
    """Read a naive window bound as UTC and convert an aware one to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class RewardCreateRequest(BaseModel):
    id: str = Field(..., min_length=1, max_length=64, pattern=r"^[a-z0-9_\-]+$")
    kind: RewardKind
    name: str = Field(..., min_length=1, max_length=128)
    description: str
    category: str = Field(..., min_length=1, max_length=64)
    criteria_kind: str
    criteria_threshold: float = Field(..., ge=0)
    rarity: Rarity = Rarity.COMMON
    criteria_description: str | None = None
    icon: str = "\U0001f3c5"
    reward_coins: int | None = Field(None, ge=0)
    reward_experience: int | None = Field(None, ge=0)
    is_active: bool = True
    is_limited: bool = False
    available_from: datetime | None = None
    available_until: datetime | None = None
    sort_order: int = 0

    @field_validator("available_from", "available_until")
    @classmethod
    def normalize_window(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    def to_definition(self) -> RewardDefinition:
        return RewardDefinition(**self.model_dump())


class RewardUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = None
    category: str | None = Field(None, min_length=1, max_length=64)
    criteria_kind: str | None = None
    criteria_threshold: float | None = Field(None, ge=0)
    rarity: Rarity | None = None
    criteria_description: str | None = None
    icon: str | None = None
    reward_coins: int | None = Field(None, ge=0)
    reward_experience: int | None = Field(None, ge=0)
    is_limited: bool | None = None
    available_from: datetime | None = None
    available_until: datetime | None = None
    sort_order: int | None = None

    @field_validator("available_from", "available_until")
    @classmethod
    def normalize_window(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class CatalogStatsResponse(BaseModel):
    total: int
    active: int
    by_category: dict[str, int]
    by_rarity: dict[str, int]
