"""Credit and monthly-quota accounting guarding generation cost.

The ledger debits before work starts and refunds on failure. Stores only
have to provide an atomic conditional decrement keyed by user id; the
in-memory stores serve single-node deployments and tests, the SQL stores push
the condition into one ``UPDATE ... WHERE`` statement.
"""

from __future__ import annotations

import asyncio
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from deckforge.core.config import settings
from deckforge.core.db.schemas.auth import User
from deckforge.core.errors import ReservationAlreadySettled
from deckforge.core.logging import get_logger

logger = get_logger(__name__)


class LedgerStore(Protocol):
    async def try_decrement(self, user_id: int, amount: int) -> bool: ...

    async def increment(self, user_id: int, amount: int) -> None: ...

    async def balance(self, user_id: int) -> int: ...


def credits_for_pages(num_pages: int) -> int:
    billing = settings.billing
    if num_pages <= 0:
        return billing.min_credits_per_generation
    total = math.ceil(num_pages * billing.credits_per_page)
    return max(billing.min_credits_per_generation, total)


def current_month(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).strftime("%Y-%m")


# In-memory stores ----------------------------------------------------------


class InMemoryCreditStore:
    """Balances in a dict; one lock per user so users never contend."""

    def __init__(self, balances: Optional[dict[int, int]] = None, *, default: int = 0) -> None:
        self._balances: dict[int, int] = dict(balances or {})
        self._default = default
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def try_decrement(self, user_id: int, amount: int) -> bool:
        async with self._locks[user_id]:
            current = self._balances.get(user_id, self._default)
            if current < amount:
                return False
            self._balances[user_id] = current - amount
            return True

    async def increment(self, user_id: int, amount: int) -> None:
        async with self._locks[user_id]:
            self._balances[user_id] = self._balances.get(user_id, self._default) + amount

    async def balance(self, user_id: int) -> int:
        return self._balances.get(user_id, self._default)


class InMemoryQuotaStore:
    """Monthly PDF allowance; ``balance`` is what is left this month."""

    def __init__(
        self,
        plans: Optional[dict[int, str]] = None,
        *,
        limits: Optional[dict[str, int]] = None,
        clock: Callable[[], str] = current_month,
    ) -> None:
        self._plans = dict(plans or {})
        self._limits = dict(limits or settings.billing.plan_limits)
        self._clock = clock
        self._used: dict[int, tuple[str, int]] = {}
        self._locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    def _limit(self, user_id: int) -> int:
        return self._limits.get(self._plans.get(user_id, "free"), 0)

    def _count(self, user_id: int) -> int:
        month, count = self._used.get(user_id, ("", 0))
        return count if month == self._clock() else 0

    async def try_decrement(self, user_id: int, amount: int) -> bool:
        async with self._locks[user_id]:
            count = self._count(user_id)
            if count + amount > self._limit(user_id):
                return False
            self._used[user_id] = (self._clock(), count + amount)
            return True

    async def increment(self, user_id: int, amount: int) -> None:
        async with self._locks[user_id]:
            count = self._count(user_id)
            self._used[user_id] = (self._clock(), max(0, count - amount))

    async def balance(self, user_id: int) -> int:
        return self._limit(user_id) - self._count(user_id)


# SQL stores ----------------------------------------------------------------


class SqlCreditStore:
    """Credits column on ``users``; the row update is the atomic primitive."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self.session_maker = session_maker

    async def try_decrement(self, user_id: int, amount: int) -> bool:
        async with self.session_maker() as session:
            result = await session.execute(
                update(User)
                .where(User.id == user_id, User.credits >= amount)
                .values(credits=User.credits - amount)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def increment(self, user_id: int, amount: int) -> None:
        async with self.session_maker() as session:
            await session.execute(
                update(User)
                .where(User.id == user_id)
                .values(credits=User.credits + amount)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def balance(self, user_id: int) -> int:
        async with self.session_maker() as session:
            row = await session.execute(select(User.credits).where(User.id == user_id))
            return row.scalar_one_or_none() or 0


class SqlQuotaStore:
    """Monthly PDF counter on ``users`` with a per-plan limit."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        limits: Optional[dict[str, int]] = None,
        clock: Callable[[], str] = current_month,
    ) -> None:
        self.session_maker = session_maker
        self.limits = dict(limits or settings.billing.plan_limits)
        self._clock = clock

    async def _reset_if_new_month(self, session: AsyncSession, user_id: int) -> None:
        await session.execute(
            update(User)
            .where(User.id == user_id, User.pdf_usage_month != self._clock())
            .values(pdf_usage_month=self._clock(), monthly_pdf_count=0)
            .execution_options(synchronize_session=False)
        )

    async def _limit(self, session: AsyncSession, user_id: int) -> int:
        row = await session.execute(select(User.plan).where(User.id == user_id))
        return self.limits.get(row.scalar_one_or_none() or "free", 0)

    async def try_decrement(self, user_id: int, amount: int) -> bool:
        async with self.session_maker() as session:
            await self._reset_if_new_month(session, user_id)
            limit = await self._limit(session, user_id)
            result = await session.execute(
                update(User)
                .where(User.id == user_id, User.monthly_pdf_count + amount <= limit)
                .values(monthly_pdf_count=User.monthly_pdf_count + amount)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return result.rowcount == 1

    async def increment(self, user_id: int, amount: int) -> None:
        async with self.session_maker() as session:
            await session.execute(
                update(User)
                .where(User.id == user_id, User.monthly_pdf_count >= amount)
                .values(monthly_pdf_count=User.monthly_pdf_count - amount)
                .execution_options(synchronize_session=False)
            )
            await session.commit()

    async def balance(self, user_id: int) -> int:
        async with self.session_maker() as session:
            await self._reset_if_new_month(session, user_id)
            await session.commit()
            limit = await self._limit(session, user_id)
            row = await session.execute(
                select(User.monthly_pdf_count).where(User.id == user_id)
            )
            return limit - (row.scalar_one_or_none() or 0)


# Ledger --------------------------------------------------------------------


@dataclass
class CreditReservation:
    """Credits debited ahead of work; settled exactly once."""

    ledger: "Ledger"
    user_id: int
    amount: int
    settled: Optional[str] = field(default=None)

    def _settle(self, how: str) -> None:
        if self.settled is not None:
            raise ReservationAlreadySettled(
                f"Reservation for user {self.user_id} already {self.settled}"
            )
        self.settled = how

    def finalize(self) -> None:
        self._settle("finalized")

    async def revert(self) -> None:
        self._settle("reverted")
        await self.ledger.release(self.user_id, self.amount)


@dataclass
class ReserveResult:
    granted: bool
    reservation: Optional[CreditReservation] = None


class Ledger:
    def __init__(self, store: LedgerStore, *, unit: str = "credits") -> None:
        self.store = store
        self.unit = unit

    async def try_reserve(self, user_id: int, amount: int) -> ReserveResult:
        """Debit ``amount`` if the balance covers it; never waits for funds."""
        if amount < 0:
            raise ValueError("amount must be non-negative")
        if not await self.store.try_decrement(user_id, amount):
            return ReserveResult(granted=False)
        logger.info("Reserved %d %s", amount, self.unit, extra={"user_id": user_id})
        return ReserveResult(
            granted=True,
            reservation=CreditReservation(ledger=self, user_id=user_id, amount=amount),
        )

    async def release(self, user_id: int, amount: int) -> None:
        await self.store.increment(user_id, amount)
        logger.info("Refunded %d %s", amount, self.unit, extra={"user_id": user_id})

    async def balance(self, user_id: int) -> int:
        return await self.store.balance(user_id)
