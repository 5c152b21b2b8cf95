"""Reward criteria evaluation.

Pure functions only: given the catalog and a stats snapshot, decide which
definitions are satisfied. No storage, no clock reads (callers pass `now`).
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from finquest.gamification.catalog import RewardDefinition


class CriteriaKind(str, Enum):
    TRANSACTION_COUNT = "transaction_count"
    TOTAL_AMOUNT = "total_amount"
    SAVINGS_GOAL = "savings_goal"
    STREAK_DAYS = "streak_days"
    LEVEL_REACHED = "level_reached"
    ACHIEVEMENT_COUNT = "achievement_count"
    COINS_EARNED = "coins_earned"
    SAVINGS_MILESTONE = "savings_milestone"
    SPECIAL_EVENT = "special_event"


@dataclass(frozen=True)
class UserStatsSnapshot:
    achievement_count: int = 0
    level: int = 1
    coins_earned: int = 0
    total_savings: float = 0.0
    streak_days: int = 0
    transaction_count: int = 0
    total_amount: float = 0.0


# Snapshot field compared against the threshold. None = manual unlock only.
CRITERIA_FIELDS: dict[CriteriaKind, str | None] = {
    CriteriaKind.TRANSACTION_COUNT: "transaction_count",
    CriteriaKind.TOTAL_AMOUNT: "total_amount",
    CriteriaKind.SAVINGS_GOAL: "total_savings",
    CriteriaKind.STREAK_DAYS: "streak_days",
    CriteriaKind.LEVEL_REACHED: "level",
    CriteriaKind.ACHIEVEMENT_COUNT: "achievement_count",
    CriteriaKind.COINS_EARNED: "coins_earned",
    CriteriaKind.SAVINGS_MILESTONE: "total_savings",
    CriteriaKind.SPECIAL_EVENT: None,
}

_missing = set(CriteriaKind) - set(CRITERIA_FIELDS)
if _missing:  # pragma: no cover - import-time guard for new kinds
    msg = f"Criteria kinds without a snapshot field mapping: {sorted(k.value for k in _missing)}"
    raise RuntimeError(msg)


def parse_kind(raw: str) -> CriteriaKind | None:
    """Parse a stored criteria kind; unknown values yield None."""
    try:
        return CriteriaKind(raw)
    except ValueError:
        return None


def current_value(reward: RewardDefinition, stats: UserStatsSnapshot) -> float | None:
    """The snapshot value this reward's criteria measures, or None if not auto-evaluable."""
    kind = parse_kind(reward.criteria_kind)
    if kind is None:
        return None
    field = CRITERIA_FIELDS[kind]
    if field is None:
        return None
    return float(getattr(stats, field))


def is_satisfied(reward: RewardDefinition, stats: UserStatsSnapshot, now: datetime) -> bool:
    if not reward.is_available(now):
        return False
    value = current_value(reward, stats)
    return value is not None and value >= reward.criteria_threshold


def evaluate(
    catalog: Iterable[RewardDefinition],
    stats: UserStatsSnapshot,
    now: datetime,
) -> list[RewardDefinition]:
    """Definitions whose criteria the snapshot satisfies. Never raises on bad kinds."""
    return [reward for reward in catalog if is_satisfied(reward, stats, now)]


@dataclass(frozen=True)
class CriteriaProgress:
    current: float
    target: float
    percentage: int
    is_completed: bool


def progress(reward: RewardDefinition, stats: UserStatsSnapshot) -> CriteriaProgress:
    """How far the user is towards the reward's threshold."""
    target = reward.criteria_threshold
    value = current_value(reward, stats)
    if value is None:
        return CriteriaProgress(current=0.0, target=target, percentage=0, is_completed=False)
    percentage = 100 if target <= 0 else min(100, int(value / target * 100))
    return CriteriaProgress(
        current=value,
        target=target,
        percentage=percentage,
        is_completed=value >= target,
    )
