"""Reward coordinator: unlock-then-pay, idempotence and partial payouts."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from finquest.db.models import UserProfile
from finquest.gamification.catalog import Rarity, RewardDefinition, RewardKind
from finquest.gamification.coordinator import GrantStatus
from finquest.gamification.errors import (
    PartialPayoutFailure,
    RewardNotActive,
    RewardNotFound,
    UserNotFound,
)


def _badge(id: str, rarity: Rarity = Rarity.COMMON, **kwargs) -> RewardDefinition:
    values = {"criteria_kind": "level_reached", "criteria_threshold": 1, **kwargs}
    return RewardDefinition(
        id=id,
        kind=RewardKind.BADGE,
        name=f"Badge {id}",
        description="",
        category="test",
        rarity=rarity,
        **values,
    )


def _achievement(id: str, coins: int, experience: int, **kwargs) -> RewardDefinition:
    values = {"criteria_kind": "transaction_count", "criteria_threshold": 1, **kwargs}
    return RewardDefinition(
        id=id,
        kind=RewardKind.ACHIEVEMENT,
        name=f"Achievement {id}",
        description="",
        category="test",
        reward_coins=coins,
        reward_experience=experience,
        **values,
    )


async def _set_profile(session_factory, user_id: str, **values) -> None:
    async with session_factory() as db:
        await db.execute(update(UserProfile).where(UserProfile.user_id == user_id).values(**values))
        await db.commit()


class TestGrantIfEligible:
    @pytest.mark.asyncio
    async def test_common_badge_pays_rarity_table(self, services, user_id):
        await services.catalog.create(_badge("starter"))

        result = await services.coordinator.grant_if_eligible(user_id, "starter")

        assert result.status is GrantStatus.GRANTED
        assert (result.coins_awarded, result.experience_awarded) == (10, 20)
        assert result.leveled_up is False
        assert (await services.wallet.get(user_id)).balance == 10
        assert (await services.experience.get(user_id)).experience == 20
        assert await services.unlocks.has_unlocked(user_id, "starter")

    @pytest.mark.asyncio
    async def test_second_grant_is_already_unlocked(self, services, user_id):
        await services.catalog.create(_achievement("first_income", coins=25, experience=50))

        first = await services.coordinator.grant_if_eligible(user_id, "first_income")
        second = await services.coordinator.grant_if_eligible(user_id, "first_income")

        assert first.granted is True
        assert second.granted is False
        assert second.status is GrantStatus.ALREADY_UNLOCKED
        assert (second.coins_awarded, second.experience_awarded) == (0, 0)
        wallet = await services.wallet.get(user_id)
        assert wallet.total_earned == 25
        assert (await services.experience.get(user_id)).experience == 50

    @pytest.mark.asyncio
    async def test_concurrent_duplicate_requests_pay_once(self, services, user_id):
        await services.catalog.create(_badge("rush", Rarity.RARE))

        results = await asyncio.gather(
            *(services.coordinator.grant_if_eligible(user_id, "rush") for _ in range(10))
        )

        assert sum(1 for r in results if r.granted) == 1
        assert (await services.wallet.get(user_id)).total_earned == 25
        assert (await services.experience.get(user_id)).experience == 50

    @pytest.mark.asyncio
    async def test_payout_can_level_up(self, services, user_id):
        await services.catalog.create(_badge("big", Rarity.UNIQUE))

        result = await services.coordinator.grant_if_eligible(user_id, "big")

        # 500 XP: leave level 1 (100), level 2 (200) -> level 3 with 200
        assert result.leveled_up is True
        assert result.new_level == 3
        assert (await services.experience.get(user_id)).experience == 200

    @pytest.mark.asyncio
    async def test_zero_payout_components_skipped(self, services, user_id):
        await services.catalog.create(_achievement("coins_only", coins=5, experience=0))

        result = await services.coordinator.grant_if_eligible(user_id, "coins_only")

        assert (result.coins_awarded, result.experience_awarded) == (5, 0)
        assert (await services.experience.get(user_id)).version == 0

    @pytest.mark.asyncio
    async def test_unknown_reward(self, services, user_id):
        with pytest.raises(RewardNotFound):
            await services.coordinator.grant_if_eligible(user_id, "nope")

    @pytest.mark.asyncio
    async def test_inactive_reward(self, services, user_id):
        await services.catalog.create(_badge("retired", is_active=False))

        with pytest.raises(RewardNotActive):
            await services.coordinator.grant_if_eligible(user_id, "retired")
        assert await services.unlocks.has_unlocked(user_id, "retired") is False

    @pytest.mark.asyncio
    async def test_unknown_user_gets_nothing(self, services):
        await services.catalog.create(_badge("starter"))

        with pytest.raises(UserNotFound):
            await services.coordinator.grant_if_eligible("ghost", "starter")

    @pytest.mark.asyncio
    async def test_special_event_can_be_unlocked_explicitly(self, services, user_id):
        await services.catalog.create(
            _badge("launch", Rarity.UNIQUE, criteria_kind="special_event", criteria_threshold=0)
        )

        result = await services.coordinator.grant_if_eligible(user_id, "launch")

        assert result.granted is True
        assert result.coins_awarded == 250


class TestPartialPayout:
    @pytest.mark.asyncio
    async def test_experience_failure_keeps_unlock_and_coins(self, services, user_id, monkeypatch):
        await services.catalog.create(_badge("fragile", Rarity.EPIC))
        monkeypatch.setattr(
            services.experience, "add_experience", AsyncMock(side_effect=RuntimeError("db down"))
        )

        with pytest.raises(PartialPayoutFailure) as exc_info:
            await services.coordinator.grant_if_eligible(user_id, "fragile")

        failure = exc_info.value
        assert failure.reward_id == "fragile"
        assert (failure.coins_applied, failure.experience_applied) == (50, 0)
        assert isinstance(failure.cause, RuntimeError)
        assert await services.unlocks.has_unlocked(user_id, "fragile") is True
        assert (await services.wallet.get(user_id)).balance == 50

    @pytest.mark.asyncio
    async def test_retry_after_partial_failure_does_not_pay_again(self, services, user_id, monkeypatch):
        await services.catalog.create(_badge("fragile"))
        monkeypatch.setattr(services.wallet, "add_coins", AsyncMock(side_effect=RuntimeError("boom")))

        with pytest.raises(PartialPayoutFailure) as exc_info:
            await services.coordinator.grant_if_eligible(user_id, "fragile")
        assert exc_info.value.coins_applied == 0

        monkeypatch.undo()
        retry = await services.coordinator.grant_if_eligible(user_id, "fragile")

        assert retry.status is GrantStatus.ALREADY_UNLOCKED
        assert (await services.wallet.get(user_id)).balance == 0


class TestCheckAndGrantAll:
    @pytest.mark.asyncio
    async def test_grants_satisfied_rewards_once(self, services, session_factory, user_id):
        await services.catalog.seed([
            _achievement("first_tx", coins=25, experience=50, criteria_threshold=1),
            _achievement("hundred_tx", coins=400, experience=800, criteria_threshold=100),
            _badge("saver", criteria_kind="total_amount", criteria_threshold=100),
        ])
        await _set_profile(session_factory, user_id, transaction_count=3, total_savings=80, total_expenses=40)

        outcome = await services.coordinator.check_and_grant_all(user_id)

        assert {r.reward.id for r in outcome.granted} == {"first_tx", "saver"}
        assert outcome.total_coins == 35
        assert outcome.total_experience == 70
        assert outcome.failures == []

        again = await services.coordinator.check_and_grant_all(user_id)
        assert again.granted == []
        assert again.total_coins == 0

    @pytest.mark.asyncio
    async def test_achievement_count_badges_follow_in_later_check(self, services, session_factory, user_id):
        await services.catalog.seed([
            _achievement("first_tx", coins=1, experience=1),
            _badge("first_steps", criteria_kind="achievement_count", criteria_threshold=1),
        ])
        await _set_profile(session_factory, user_id, transaction_count=1)

        first = await services.coordinator.check_and_grant_all(user_id)
        second = await services.coordinator.check_and_grant_all(user_id)

        # The snapshot is taken before granting, so the badge unlocks on the next check
        assert {r.reward.id for r in first.granted} == {"first_tx"}
        assert {r.reward.id for r in second.granted} == {"first_steps"}

    @pytest.mark.asyncio
    async def test_partial_failure_does_not_stop_other_grants(self, services, session_factory, user_id, monkeypatch):
        await services.catalog.seed([
            _achievement("a_coins", coins=10, experience=0, sort_order=1),
            _achievement("b_xp", coins=0, experience=10, sort_order=2),
        ])
        await _set_profile(session_factory, user_id, transaction_count=1)
        monkeypatch.setattr(services.experience, "add_experience", AsyncMock(side_effect=RuntimeError("xp down")))

        outcome = await services.coordinator.check_and_grant_all(user_id)

        assert [r.reward.id for r in outcome.granted] == ["a_coins"]
        assert [f.reward_id for f in outcome.failures] == ["b_xp"]
        assert outcome.total_coins == 10
        assert await services.unlocks.unlocked_ids(user_id) == {"a_coins", "b_xp"}

    @pytest.mark.asyncio
    async def test_storage_error_on_one_reward_keeps_the_rest(self, services, session_factory, user_id, monkeypatch):
        await services.catalog.seed([
            _achievement("a_first", coins=5, experience=0, sort_order=1),
            _achievement("b_broken", coins=7, experience=0, sort_order=2),
            _achievement("c_last", coins=9, experience=0, sort_order=3),
        ])
        await _set_profile(session_factory, user_id, transaction_count=1)
        original_unlock = services.unlocks.unlock

        async def unlock(uid, reward_id, kind):
            if reward_id == "b_broken":
                raise OperationalError("INSERT INTO user_unlocks", {}, Exception("database is locked"))
            return await original_unlock(uid, reward_id, kind)

        monkeypatch.setattr(services.unlocks, "unlock", unlock)

        outcome = await services.coordinator.check_and_grant_all(user_id)

        assert [r.reward.id for r in outcome.granted] == ["a_first", "c_last"]
        assert [e.reward_id for e in outcome.errors] == ["b_broken"]
        assert "database is locked" in outcome.errors[0].error
        assert outcome.failures == []
        assert outcome.total_coins == 14
        assert (await services.wallet.get(user_id)).balance == 14

    @pytest.mark.asyncio
    async def test_snapshot_sources(self, services, session_factory, user_id):
        await services.wallet.add_coins(user_id, 40)
        await services.wallet.spend_coins(user_id, 15)
        await services.experience.add_experience(user_id, 120)
        await services.unlocks.unlock(user_id, "x", RewardKind.ACHIEVEMENT)
        await services.unlocks.unlock(user_id, "y", RewardKind.BADGE)
        await _set_profile(session_factory, user_id, total_savings=300, total_expenses=200, transaction_count=9)

        stats = await services.coordinator.snapshot(user_id)

        assert stats.achievement_count == 1
        assert stats.level == 2
        assert stats.coins_earned == 40
        assert stats.total_savings == 300.0
        assert stats.total_amount == 500.0
        assert stats.transaction_count == 9
        assert stats.streak_days == 0


class TestAwardExperience:
    @pytest.mark.asyncio
    async def test_level_up_pays_bonus_per_level(self, services, user_id):
        award = await services.coordinator.award_experience(user_id, 300)

        assert award.grant.new_level == 3
        assert award.bonus_coins == 20 + 30
        assert (await services.wallet.get(user_id)).balance == 50

    @pytest.mark.asyncio
    async def test_no_bonus_without_level_up(self, services, user_id):
        award = await services.coordinator.award_experience(user_id, 10)

        assert award.bonus_coins == 0
        assert (await services.wallet.get(user_id)).balance == 0
