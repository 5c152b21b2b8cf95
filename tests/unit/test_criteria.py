"""Reward criteria evaluation."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from finquest.gamification.catalog import Rarity, RewardDefinition, RewardKind
from finquest.gamification.criteria import (
    CRITERIA_FIELDS,
    CriteriaKind,
    UserStatsSnapshot,
    evaluate,
    progress,
)

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _reward(
    id: str,
    criteria_kind: str,
    threshold: float,
    kind: RewardKind = RewardKind.BADGE,
    **kwargs,
) -> RewardDefinition:
    return RewardDefinition(
        id=id,
        kind=kind,
        name=id.replace("_", " ").title(),
        description="",
        category="test",
        criteria_kind=criteria_kind,
        criteria_threshold=threshold,
        **kwargs,
    )


def _ids(rewards) -> set[str]:
    return {r.id for r in rewards}


class TestCriteriaMapping:
    def test_every_kind_has_a_mapping(self):
        assert set(CRITERIA_FIELDS) == set(CriteriaKind)

    def test_mapped_fields_exist_on_snapshot(self):
        snapshot = UserStatsSnapshot()
        for field in CRITERIA_FIELDS.values():
            if field is not None:
                assert hasattr(snapshot, field)

    def test_savings_kinds_both_read_total_savings(self):
        assert CRITERIA_FIELDS[CriteriaKind.SAVINGS_GOAL] == "total_savings"
        assert CRITERIA_FIELDS[CriteriaKind.SAVINGS_MILESTONE] == "total_savings"


class TestEvaluate:
    def test_level_reached(self):
        catalog = [_reward("lvl5", "level_reached", 5), _reward("lvl10", "level_reached", 10)]
        assert _ids(evaluate(catalog, UserStatsSnapshot(level=5), NOW)) == {"lvl5"}

    def test_threshold_is_inclusive(self):
        catalog = [_reward("tx10", "transaction_count", 10)]
        assert _ids(evaluate(catalog, UserStatsSnapshot(transaction_count=10), NOW)) == {"tx10"}
        assert evaluate(catalog, UserStatsSnapshot(transaction_count=9), NOW) == []

    def test_each_stat_field_is_used(self):
        catalog = [
            _reward("amount", "total_amount", 100),
            _reward("goal", "savings_goal", 50),
            _reward("milestone", "savings_milestone", 500),
            _reward("streak", "streak_days", 7),
            _reward("achievements", "achievement_count", 3),
            _reward("coins", "coins_earned", 1000),
        ]
        stats = UserStatsSnapshot(
            total_amount=150.0,
            total_savings=60.0,
            streak_days=0,
            achievement_count=3,
            coins_earned=999,
        )
        assert _ids(evaluate(catalog, stats, NOW)) == {"amount", "goal", "achievements"}

    def test_unknown_kind_is_excluded_not_raised(self):
        catalog = [_reward("mystery", "moon_phase", 1), _reward("lvl1", "level_reached", 1)]
        assert _ids(evaluate(catalog, UserStatsSnapshot(), NOW)) == {"lvl1"}

    def test_special_event_never_unlocks_automatically(self):
        catalog = [_reward("launch", "special_event", 0)]
        assert evaluate(catalog, UserStatsSnapshot(level=99), NOW) == []

    def test_inactive_reward_excluded(self):
        catalog = [_reward("off", "level_reached", 1, is_active=False)]
        assert evaluate(catalog, UserStatsSnapshot(), NOW) == []

    def test_limited_badge_outside_window_excluded(self):
        catalog = [
            _reward(
                "expired", "level_reached", 1, is_limited=True,
                available_from=NOW - timedelta(days=10), available_until=NOW - timedelta(days=1),
            ),
            _reward("future", "level_reached", 1, is_limited=True, available_from=NOW + timedelta(days=1)),
            _reward("open_ended", "level_reached", 1, is_limited=True, available_from=NOW - timedelta(days=1)),
        ]
        assert _ids(evaluate(catalog, UserStatsSnapshot(), NOW)) == {"open_ended"}

    def test_window_ignored_when_not_limited(self):
        catalog = [
            _reward("always", "level_reached", 1, available_until=NOW - timedelta(days=1)),
        ]
        assert _ids(evaluate(catalog, UserStatsSnapshot(), NOW)) == {"always"}

    def test_empty_catalog(self):
        assert evaluate([], UserStatsSnapshot(level=50), NOW) == []


class TestProgress:
    def test_partial_progress(self):
        result = progress(_reward("tx", "transaction_count", 100), UserStatsSnapshot(transaction_count=25))
        assert result.current == 25
        assert result.target == 100
        assert result.percentage == 25
        assert result.is_completed is False

    def test_progress_capped_at_100(self):
        result = progress(_reward("lvl", "level_reached", 5), UserStatsSnapshot(level=12))
        assert result.percentage == 100
        assert result.is_completed is True

    def test_special_event_shows_no_progress(self):
        result = progress(
            _reward("launch", "special_event", 0, rarity=Rarity.UNIQUE),
            UserStatsSnapshot(level=10),
        )
        assert result.percentage == 0
        assert result.is_completed is False
