"""Loan repayment ledger.

Maintains the per-loan deduction schedules, records manual payments and
closes loans once their principal has been repaid.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Callable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from benefits_engine.config import get_settings
from benefits_engine.errors import InvalidInput, NotFound
from benefits_engine.models import (
    CarLoan,
    CarLoanDeduction,
    HousingLoan,
    HousingLoanDeduction,
    LoanPaymentHistory,
    SalaryLoan,
    SalaryLoanDeduction,
)
from benefits_engine.services import schedule
from benefits_engine.services.locking_service import LockingService
from benefits_engine.services.state_machine import (
    DeductionStatus,
    RequestStateMachine,
    RequestStatus,
)

logger = logging.getLogger(__name__)

EARLY_PAYMENT_METHOD = "Early Payment"
CENT = Decimal("0.01")


class LoanType(str, Enum):
    SALARY = "Salary Loan"
    CAR = "Car Loan"
    HOUSING = "Housing Loan"


LOAN_MODELS: dict[LoanType, tuple[type, type]] = {
    LoanType.SALARY: (SalaryLoan, SalaryLoanDeduction),
    LoanType.CAR: (CarLoan, CarLoanDeduction),
    LoanType.HOUSING: (HousingLoan, HousingLoanDeduction),
}


def parse_loan_type(value: str | LoanType) -> LoanType:
    """Accept either the stored name ("Car Loan") or its URL slug ("car-loan")."""
    try:
        return LoanType(value)
    except ValueError:
        pass
    try:
        return LoanType(str(value).replace("-", " ").title())
    except ValueError:
        raise InvalidInput(f"Invalid loan type '{value}'") from None


def default_payment_note(amount: Decimal, currency_symbol: str | None = None) -> str:
    symbol = currency_symbol if currency_symbol is not None else get_settings().currency_symbol
    return f"Early payment of {symbol}{amount.quantize(CENT):,}"


def new_transaction_id() -> str:
    return f"EP-{uuid.uuid4().hex[:16].upper()}"


# ============================================================================
# Results
# ============================================================================


@dataclass(frozen=True)
class RefreshResult:
    """Counts from one maintenance pass."""

    as_of: date
    entries_updated: int
    loans_completed: int = 0


@dataclass(frozen=True)
class PaymentResult:
    """Committed result of one manual payment."""

    history: LoanPaymentHistory
    updated_entries: list
    cancelled_entries: list
    loan_completed: bool
    unallocated: Decimal

    @property
    def cancelled_count(self) -> int:
        return len(self.cancelled_entries)


@dataclass(frozen=True)
class LoanSummary:
    loan_id: int
    loan_type: LoanType
    employee_id: str
    principal: Decimal
    status: str
    paid_amount: Decimal
    remaining_amount: Decimal
    paid_months: int
    remaining_months: int
    entries: list = field(default_factory=list)
    history: list = field(default_factory=list)


class LedgerService:
    """Deduction schedule maintenance and manual payment posting.

    Every operation takes the loan row lock before touching the loan's
    schedule, so payments and maintenance passes on the same loan serialize.

    Key invariants:
    1. A payment history record is written only together with its allocation
    2. At most one entry per loan is Partially Deducted, and it is the latest
       entry funded by a payment
    3. Completed loans have no Upcoming or Pending entries
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] | None = None,
        tolerance: Decimal | None = None,
    ):
        self.session = session
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.tolerance = (
            tolerance if tolerance is not None else get_settings().completion_tolerance
        )
        self.locks = LockingService(session)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def refresh_schedules(self, as_of: date | None = None) -> RefreshResult:
        """Bring every schedule's date-driven statuses up to `as_of`."""
        as_of = as_of or self.clock().date()
        try:
            updated = await self._refresh(as_of)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("Refreshed deduction schedules as of %s: %d entries updated", as_of, updated)
        return RefreshResult(as_of=as_of, entries_updated=updated)

    async def complete_loans_if_paid(self) -> int:
        """Mark Approved loans whose deducted installments cover the principal."""
        try:
            completed = await self._complete_paid_loans()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info("Completed %d fully repaid loans", completed)
        return completed

    async def run_maintenance(self, as_of: date | None = None) -> RefreshResult:
        """Refresh schedules then close repaid loans, in one transaction."""
        as_of = as_of or self.clock().date()
        try:
            updated = await self._refresh(as_of)
            completed = await self._complete_paid_loans()
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        logger.info(
            "Ledger maintenance as of %s: %d entries updated, %d loans completed",
            as_of,
            updated,
            completed,
        )
        return RefreshResult(as_of=as_of, entries_updated=updated, loans_completed=completed)

    async def _refresh(self, as_of: date) -> int:
        updated = 0
        for loan_model, deduction_model in LOAN_MODELS.values():
            for loan in await self.locks.lock_loans(loan_model):
                entries = await self.locks.lock_schedule(deduction_model, loan.id)
                updated += sum(
                    1 for entry in entries if schedule.refresh_entry(entry, as_of)
                )
        await self.session.flush()
        return updated

    async def _complete_paid_loans(self) -> int:
        completed = 0
        for loan_type, (loan_model, deduction_model) in LOAN_MODELS.items():
            loans = await self.locks.lock_loans(loan_model, RequestStatus.APPROVED.value)
            for loan in loans:
                entries = await self.locks.lock_schedule(deduction_model, loan.id)
                deducted = schedule.total_deducted(entries)
                if schedule.is_fully_paid(deducted, loan.principal, self.tolerance):
                    self._complete(loan)
                    completed += 1
                    logger.info("%s %s completed by scheduled deductions", loan_type.value, loan.id)
        await self.session.flush()
        return completed

    def _complete(self, loan) -> None:
        RequestStateMachine.validate_transition(loan.status, RequestStatus.COMPLETED.value)
        loan.status = RequestStatus.COMPLETED.value
        loan.updated_at = self.clock()

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    async def apply_payment(
        self,
        loan_id: int,
        loan_type: str | LoanType,
        amount: Decimal | int | str,
        notes: str | None = None,
        skip_schedule_allocation: bool = False,
    ) -> PaymentResult:
        """Record a manual payment and allocate it onto the schedule.

        Raises:
            InvalidInput: unknown loan type, or an amount that is not a
                positive number of whole cents
            NotFound: loan does not exist
        """
        kind = parse_loan_type(loan_type)
        try:
            amount = Decimal(str(amount))
        except ArithmeticError:
            raise InvalidInput(f"Invalid payment amount '{amount}'") from None
        if not amount.is_finite() or amount <= 0:
            raise InvalidInput("Payment amount must be greater than zero")
        # Stored amounts are whole cents
        try:
            cents = amount.quantize(CENT)
        except ArithmeticError:
            raise InvalidInput(f"Invalid payment amount '{amount}'") from None
        if cents != amount:
            raise InvalidInput("Payment amount cannot have fractions of a cent")
        amount = cents

        try:
            result = await self._apply_payment(
                loan_id, kind, amount, notes, skip_schedule_allocation
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Payment %s of %s on %s %s: %d entries updated, %d cancelled, completed=%s",
            result.history.transaction_id,
            amount,
            kind.value,
            loan_id,
            len(result.updated_entries),
            result.cancelled_count,
            result.loan_completed,
        )
        if result.unallocated > 0:
            logger.warning(
                "Payment %s left %s unallocated on %s %s",
                result.history.transaction_id,
                result.unallocated,
                kind.value,
                loan_id,
            )
        return result

    async def _apply_payment(
        self,
        loan_id: int,
        kind: LoanType,
        amount: Decimal,
        notes: str | None,
        skip_schedule_allocation: bool,
    ) -> PaymentResult:
        loan_model, deduction_model = LOAN_MODELS[kind]
        loan = await self.locks.lock_loan(loan_model, loan_id)
        if loan is None:
            raise NotFound("Loan not found")
        entries = await self.locks.lock_schedule(deduction_model, loan_id)

        paid_at = self.clock()
        notes = notes or default_payment_note(amount)
        history = LoanPaymentHistory(
            loan_id=loan_id,
            loan_type=kind.value,
            payment_amount=amount,
            payment_date=paid_at,
            transaction_id=new_transaction_id(),
            notes=notes,
            payment_method=EARLY_PAYMENT_METHOD,
        )
        self.session.add(history)

        if skip_schedule_allocation:
            await self.session.flush()
            return PaymentResult(
                history=history,
                updated_entries=[],
                cancelled_entries=[],
                loan_completed=False,
                unallocated=amount,
            )

        allocation = schedule.allocate_payment(entries, amount, paid_at, notes)

        cancelled: list = []
        completed = False
        paid = schedule.total_paid(entries)
        if RequestStateMachine.can_transition(
            loan.status, RequestStatus.COMPLETED.value
        ) and schedule.is_fully_paid(paid, loan.principal, self.tolerance):
            cancelled = schedule.cancel_open_entries(entries)
            self._complete(loan)
            completed = True

        await self.session.flush()
        return PaymentResult(
            history=history,
            updated_entries=allocation.touched,
            cancelled_entries=cancelled,
            loan_completed=completed,
            unallocated=allocation.unallocated,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_loan(self, loan_id: int, loan_type: str | LoanType):
        loan_model, _ = LOAN_MODELS[parse_loan_type(loan_type)]
        loan = await self.session.get(loan_model, loan_id)
        if loan is None:
            raise NotFound("Loan not found")
        return loan

    async def loan_summary(self, loan_id: int, loan_type: str | LoanType) -> LoanSummary:
        """Schedule, repayment totals and payment history for one loan."""
        kind = parse_loan_type(loan_type)
        loan = await self.get_loan(loan_id, kind)
        _, deduction_model = LOAN_MODELS[kind]

        result = await self.session.execute(
            select(deduction_model)
            .where(deduction_model.loan_id == loan_id)
            .order_by(deduction_model.deduction_date, deduction_model.id)
        )
        entries = list(result.scalars().all())

        history_result = await self.session.execute(
            select(LoanPaymentHistory)
            .where(
                LoanPaymentHistory.loan_id == loan_id,
                LoanPaymentHistory.loan_type == kind.value,
            )
            .order_by(LoanPaymentHistory.payment_date.desc(), LoanPaymentHistory.id.desc())
        )

        paid = schedule.total_paid(entries)
        if loan.status == RequestStatus.COMPLETED.value:
            remaining = schedule.ZERO
        else:
            remaining = max(schedule.ZERO, loan.principal - paid)

        return LoanSummary(
            loan_id=loan.id,
            loan_type=kind,
            employee_id=loan.employee_id,
            principal=loan.principal,
            status=loan.status,
            paid_amount=paid,
            remaining_amount=remaining,
            paid_months=sum(
                1 for e in entries if e.status == DeductionStatus.DEDUCTED.value
            ),
            remaining_months=sum(
                1
                for e in entries
                if e.status
                not in (DeductionStatus.DEDUCTED.value, DeductionStatus.CANCELLED.value)
            ),
            entries=entries,
            history=list(history_result.scalars().all()),
        )
