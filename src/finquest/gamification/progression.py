"""Pure level arithmetic and the state values the ledgers hand out.

The experience ledger loads a state value, calls `apply_experience` and
persists the returned state. Wallet credits and debits are single
conditional UPDATEs, so the wallet only shares the amount check and the
state type. Nothing in here touches storage.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from finquest.gamification.errors import InvalidAmount

EXPERIENCE_PER_LEVEL = 100


def experience_for_next_level(level: int) -> int:
    """Experience needed to leave `level`."""
    return level * EXPERIENCE_PER_LEVEL


def require_positive(amount: int, what: str) -> None:
    """Raise InvalidAmount unless `amount` is a positive integer."""
    if amount <= 0:
        msg = f"{what} amount must be positive, got {amount}"
        raise InvalidAmount(msg)


# ---------------------------------------------------------------------------
# Experience
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProgressState:
    level: int = 1
    experience: int = 0
    version: int = 0

    @property
    def experience_to_next_level(self) -> int:
        return experience_for_next_level(self.level)

    @property
    def level_progress(self) -> int:
        """Percentage of the way through the current level (0-100)."""
        return round(self.experience / self.experience_to_next_level * 100)


@dataclass(frozen=True)
class ExperienceGrant:
    """Outcome of one experience grant."""

    leveled_up: bool
    new_level: int
    experience: int
    experience_gained: int
    levels_gained: int = 0


def apply_experience(state: ProgressState, amount: int) -> tuple[ProgressState, ExperienceGrant]:
    """Add experience, carrying any excess through as many levels as it covers.

    Raises:
        InvalidAmount: If amount is not a positive integer.
    """
    require_positive(amount, "Experience")

    level = state.level
    experience = state.experience + amount
    required = experience_for_next_level(level)
    while experience >= required:
        experience -= required
        level += 1
        required = experience_for_next_level(level)

    new_state = replace(state, level=level, experience=experience, version=state.version + 1)
    grant = ExperienceGrant(
        leveled_up=level > state.level,
        new_level=level,
        experience=experience,
        experience_gained=amount,
        levels_gained=level - state.level,
    )
    return new_state, grant


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WalletState:
    balance: int = 0
    total_earned: int = 0
    total_spent: int = 0


def level_bonus_coins(old_level: int, new_level: int, coins_per_level: int) -> int:
    """Coins paid for reaching each level in (old_level, new_level]."""
    return sum(level * coins_per_level for level in range(old_level + 1, new_level + 1))
