"""Progression engine error taxonomy.

Every error carries the HTTP status and machine-readable code the API layer
responds with. "Already unlocked" is deliberately not here: it is a normal
grant outcome (see GrantStatus).
"""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for progression and reward errors."""

    status_code = 400
    code = "progression_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__name__)


class InvalidAmount(ProgressionError):
    status_code = 422
    code = "invalid_amount"


class UserNotFound(ProgressionError):
    status_code = 404
    code = "user_not_found"


class InsufficientFunds(ProgressionError):
    status_code = 409
    code = "insufficient_funds"


class RewardNotFound(ProgressionError):
    status_code = 404
    code = "reward_not_found"


class RewardNotActive(ProgressionError):
    status_code = 409
    code = "reward_not_active"


class RewardConflict(ProgressionError):
    """Catalog write collides with an existing id or name."""

    status_code = 409
    code = "reward_conflict"


class ConcurrentUpdate(ProgressionError):
    """Optimistic update kept losing to other writers."""

    status_code = 409
    code = "concurrent_update"


class PartialPayoutFailure(ProgressionError):
    """Unlock committed but the coin/experience payout did not fully apply.

    The unlock is never reversed; operators reconcile from the log entry.
    """

    status_code = 500
    code = "partial_payout_failure"

    def __init__(
        self,
        user_id: str,
        reward_id: str,
        coins_applied: int,
        experience_applied: int,
        cause: BaseException,
    ) -> None:
        self.user_id = user_id
        self.reward_id = reward_id
        self.coins_applied = coins_applied
        self.experience_applied = experience_applied
        self.cause = cause
        super().__init__(
            f"Reward {reward_id} unlocked for user {user_id} but payout failed: {cause}"
        )
