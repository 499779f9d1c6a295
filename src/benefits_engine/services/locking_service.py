"""Row-level locking for read-then-write sequences.

Every mutating operation reads the rows it is about to change through this
service so that concurrent deciders or payers serialize on the same rows:

1. A decision locks the request row before checking status and level.
2. Ledger operations lock the loan row first (the per-loan lock), then the
   loan's schedule rows in date order.

On PostgreSQL this is `SELECT ... FOR UPDATE`; SQLite ignores the clause and
relies on its database-level write lock.
"""

from __future__ import annotations

from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

T = TypeVar("T")


class LockingService:
    """Acquire row locks inside the caller's transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_request(self, model: type[T], request_id: int) -> T | None:
        """Lock one request row, returning None if it does not exist."""
        result = await self.session.execute(
            select(model).where(model.id == request_id).with_for_update()
        )
        return result.scalar_one_or_none()

    async def lock_loan(self, loan_model: type[T], loan_id: int) -> T | None:
        """Take the per-loan lock shared by every ledger operation."""
        return await self.lock_request(loan_model, loan_id)

    async def lock_loans(self, loan_model: type[T], status: str | None = None) -> list[T]:
        """Lock every loan (optionally filtered by status) in id order."""
        query = select(loan_model).order_by(loan_model.id).with_for_update()
        if status is not None:
            query = query.where(loan_model.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def lock_schedule(self, deduction_model: type[T], loan_id: int) -> list[T]:
        """Lock a loan's deduction entries, earliest first."""
        result = await self.session.execute(
            select(deduction_model)
            .where(deduction_model.loan_id == loan_id)
            .order_by(deduction_model.deduction_date, deduction_model.id)
            .with_for_update()
        )
        return list(result.scalars().all())
