"""Default reward catalog: 12 achievements and 8 badges."""

from __future__ import annotations

import logging

from finquest.gamification.catalog import Rarity, RewardCatalog, RewardDefinition, RewardKind

logger = logging.getLogger(__name__)


def _achievement(
    id: str,
    name: str,
    description: str,
    icon: str,
    category: str,
    criteria_kind: str,
    threshold: float,
    experience: int,
    coins: int,
    rarity: Rarity,
    sort_order: int,
) -> RewardDefinition:
    return RewardDefinition(
        id=id,
        kind=RewardKind.ACHIEVEMENT,
        name=name,
        description=description,
        icon=icon,
        category=category,
        criteria_kind=criteria_kind,
        criteria_threshold=threshold,
        reward_experience=experience,
        reward_coins=coins,
        rarity=rarity,
        sort_order=sort_order,
    )


ACHIEVEMENT_SEED_DATA: list[RewardDefinition] = [
    # Financial
    _achievement("first_income", "First Income", "Record your first income transaction",
                 "\U0001f4b0", "financial", "transaction_count", 1, 50, 25, Rarity.COMMON, 1),
    # Savings
    _achievement("saver_novice", "Novice Saver", "Save $100 for the first time",
                 "\U0001f3e6", "savings", "total_amount", 100, 100, 50, Rarity.COMMON, 2),
    _achievement("goal_reached", "Goal Reached", "Put your first savings towards a goal",
                 "\U0001f3af", "savings", "savings_goal", 1, 300, 150, Rarity.EPIC, 4),
    _achievement("saver_expert", "Expert Saver", "Save $1,000",
                 "\U0001f48e", "savings", "total_amount", 1_000, 1000, 500, Rarity.EPIC, 6),
    _achievement("saver_legendary", "Legendary Saver", "Save $10,000",
                 "\U0001f451", "savings", "total_amount", 10_000, 5000, 2500, Rarity.LEGENDARY, 9),
    _achievement("saver_millionaire", "Millionaire Saver", "Save $100,000",
                 "\U0001f48e", "savings", "total_amount", 100_000, 10000, 5000, Rarity.LEGENDARY, 12),
    # Tracking
    _achievement("tracker_consistent", "Consistent Tracker", "Record transactions 7 days in a row",
                 "\U0001f4ca", "tracking", "streak_days", 7, 200, 100, Rarity.RARE, 3),
    _achievement("tracker_master", "Master Tracker", "Record transactions 30 days in a row",
                 "\U0001f4c8", "tracking", "streak_days", 30, 2000, 1000, Rarity.LEGENDARY, 7),
    _achievement("prolific_tracker", "Prolific Tracker", "Record 100 transactions",
                 "\U0001f4dd", "tracking", "transaction_count", 100, 800, 400, Rarity.RARE, 10),
    # Milestones
    _achievement("level_5", "Level 5", "Reach level 5",
                 "⭐", "milestone", "level_reached", 5, 500, 250, Rarity.RARE, 5),
    _achievement("level_10", "Level 10", "Reach level 10",
                 "\U0001f31f", "milestone", "level_reached", 10, 1500, 750, Rarity.EPIC, 8),
    _achievement("level_20", "Level 20", "Reach level 20",
                 "\U0001f3c6", "milestone", "level_reached", 20, 3000, 1500, Rarity.LEGENDARY, 11),
]

BADGE_SEED_DATA: list[RewardDefinition] = [
    RewardDefinition(
        id="first_steps", kind=RewardKind.BADGE, name="First Steps",
        description="Unlock your first achievement", icon="\U0001f463", category="progress",
        criteria_kind="achievement_count", criteria_threshold=1, rarity=Rarity.COMMON,
        sort_order=101,
    ),
    RewardDefinition(
        id="collector", kind=RewardKind.BADGE, name="Collector",
        description="Unlock 5 achievements", icon="\U0001f5c3", category="progress",
        criteria_kind="achievement_count", criteria_threshold=5, rarity=Rarity.RARE,
        sort_order=102,
    ),
    RewardDefinition(
        id="coin_hoarder", kind=RewardKind.BADGE, name="Coin Hoarder",
        description="Earn 1,000 coins in total", icon="\U0001fa99", category="coins",
        criteria_kind="coins_earned", criteria_threshold=1_000, rarity=Rarity.RARE,
        sort_order=103,
    ),
    RewardDefinition(
        id="coin_magnate", kind=RewardKind.BADGE, name="Coin Magnate",
        description="Earn 10,000 coins in total", icon="\U0001f4b8", category="coins",
        criteria_kind="coins_earned", criteria_threshold=10_000, rarity=Rarity.EPIC,
        sort_order=104,
    ),
    RewardDefinition(
        id="nest_egg", kind=RewardKind.BADGE, name="Nest Egg",
        description="Reach $500 in savings", icon="\U0001f95a", category="savings",
        criteria_kind="savings_milestone", criteria_threshold=500, rarity=Rarity.COMMON,
        sort_order=105,
    ),
    RewardDefinition(
        id="veteran", kind=RewardKind.BADGE, name="Veteran",
        description="Reach level 15", icon="\U0001f396", category="progress",
        criteria_kind="level_reached", criteria_threshold=15, rarity=Rarity.EPIC,
        sort_order=106,
    ),
    RewardDefinition(
        id="grand_master", kind=RewardKind.BADGE, name="Grand Master",
        description="Reach level 50", icon="\U0001f9d9", category="progress",
        criteria_kind="level_reached", criteria_threshold=50, rarity=Rarity.LEGENDARY,
        sort_order=107,
    ),
    RewardDefinition(
        id="founding_member", kind=RewardKind.BADGE, name="Founding Member",
        description="Joined during the launch event", icon="\U0001f984", category="events",
        criteria_kind="special_event", criteria_threshold=0, rarity=Rarity.UNIQUE,
        is_limited=True, sort_order=108,
    ),
]


async def seed_catalog(catalog: RewardCatalog) -> int:
    """Insert missing default definitions. Existing ones are left as edited by admins."""
    seeded = await catalog.seed(ACHIEVEMENT_SEED_DATA + BADGE_SEED_DATA)
    logger.info("Seeded %d reward definitions", seeded)
    return seeded
