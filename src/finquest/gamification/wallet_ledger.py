"""Wallet ledger: coin balance with earn/spend totals."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from finquest.db.models import UserWallet
from finquest.gamification.errors import InsufficientFunds, UserNotFound
from finquest.gamification.progression import WalletState, require_positive

logger = logging.getLogger(__name__)


class WalletLedger:
    """Owns UserWallet.

    Credits and debits are single conditional UPDATE statements, so
    `balance == total_earned - total_spent` and `balance >= 0` hold under any
    interleaving of concurrent callers.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def open_account(self, user_id: str) -> bool:
        """Create an empty wallet. Returns False if it already exists."""
        async with self._session_factory() as db:
            db.add(UserWallet(user_id=user_id, balance=0, total_earned=0, total_spent=0))
            try:
                await db.commit()
            except IntegrityError:
                await db.rollback()
                return False
        return True

    async def _load(self, db: AsyncSession, user_id: str) -> WalletState | None:
        result = await db.execute(
            select(UserWallet.balance, UserWallet.total_earned, UserWallet.total_spent).where(
                UserWallet.user_id == user_id
            )
        )
        row = result.one_or_none()
        if row is None:
            return None
        return WalletState(balance=row.balance, total_earned=row.total_earned, total_spent=row.total_spent)

    async def get(self, user_id: str) -> WalletState:
        """Current wallet state. Raises UserNotFound."""
        async with self._session_factory() as db:
            state = await self._load(db, user_id)
        if state is None:
            msg = f"No wallet for user {user_id}"
            raise UserNotFound(msg)
        return state

    async def add_coins(self, user_id: str, amount: int, reason: str = "") -> WalletState:
        """Credit coins. `reason` is an audit label for the log only."""
        require_positive(amount, "Coin")

        async with self._session_factory() as db:
            result = await db.execute(
                update(UserWallet)
                .where(UserWallet.user_id == user_id)
                .values(
                    balance=UserWallet.balance + amount,
                    total_earned=UserWallet.total_earned + amount,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                msg = f"No wallet for user {user_id}"
                raise UserNotFound(msg)
            await db.commit()

        logger.info("User %s earned %d coins (%s)", user_id, amount, reason or "unspecified")
        return await self.get(user_id)

    async def spend_coins(self, user_id: str, amount: int, reason: str = "") -> WalletState:
        """Debit coins; fails atomically with InsufficientFunds when balance < amount.

        The balance check is the UPDATE's own WHERE clause. A miss is reported
        with the balance observed right after it, for the message only.
        """
        require_positive(amount, "Coin")

        async with self._session_factory() as db:
            result = await db.execute(
                update(UserWallet)
                .where(UserWallet.user_id == user_id, UserWallet.balance >= amount)
                .values(
                    balance=UserWallet.balance - amount,
                    total_spent=UserWallet.total_spent + amount,
                    updated_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                await db.rollback()
                current = await self._load(db, user_id)
                if current is None:
                    msg = f"No wallet for user {user_id}"
                    raise UserNotFound(msg)
                msg = f"Insufficient coins: balance {current.balance}, requested {amount}"
                raise InsufficientFunds(msg)
            await db.commit()

        logger.info("User %s spent %d coins (%s)", user_id, amount, reason or "unspecified")
        return await self.get(user_id)

    async def can_afford(self, user_id: str, cost: int) -> bool:
        """Read-only affordability check. Unknown users cannot afford anything."""
        async with self._session_factory() as db:
            state = await self._load(db, user_id)
        return state is not None and state.balance >= cost
