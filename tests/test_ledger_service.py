"""Loan repayment ledger tests.

Covers the date-driven schedule refresh, manual payment allocation and loan
completion on a 12 x 1,000 salary loan schedule.
"""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from benefits_engine.errors import InvalidInput, NotFound
from benefits_engine.models import (
    CarLoan,
    CarLoanDeduction,
    LoanPaymentHistory,
    SalaryLoan,
    SalaryLoanDeduction,
)
from benefits_engine.services.ledger_service import (
    LedgerService,
    LoanType,
    default_payment_note,
    parse_loan_type,
)
from benefits_engine.services.schedule import EARLY_COMPLETION_NOTE

from .conftest import FIXED_NOW, fixed_clock


pytestmark = pytest.mark.asyncio


async def schedule_of(session: AsyncSession, loan_id: int, model=SalaryLoanDeduction):
    result = await session.execute(
        select(model)
        .where(model.loan_id == loan_id)
        .order_by(model.deduction_date)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def history_count(session: AsyncSession) -> int:
    return await session.scalar(select(func.count()).select_from(LoanPaymentHistory))


class TestLoanTypes:
    async def test_parse_names_and_slugs(self):
        assert parse_loan_type("Salary Loan") is LoanType.SALARY
        assert parse_loan_type("car-loan") is LoanType.CAR
        assert parse_loan_type(LoanType.HOUSING) is LoanType.HOUSING
        with pytest.raises(InvalidInput):
            parse_loan_type("Boat Loan")

    async def test_default_payment_note(self):
        assert default_payment_note(Decimal("2500"), "₱") == "Early payment of ₱2,500.00"
        assert default_payment_note(Decimal("2500.5"), "₱") == "Early payment of ₱2,500.50"
        assert default_payment_note(Decimal("12345.50"), "₱") == "Early payment of ₱12,345.50"


class TestRefreshSchedules:
    """Statuses follow the calendar and the pass is idempotent."""

    async def test_refresh_marks_past_entries_deducted(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        ledger = LedgerService(directory, clock=fixed_clock)

        result = await ledger.refresh_schedules(date(2025, 3, 20))
        assert result.entries_updated == 3

        entries = await schedule_of(directory, loan.id)
        assert [e.status for e in entries[:3]] == ["Deducted"] * 3
        assert all(e.status == "Upcoming" for e in entries[3:])
        assert entries[0].actual_deduction_date is not None
        assert entries[0].actual_deduction_date.date() == date(2025, 1, 15)
        assert entries[0].is_early_payment is False

        again = await ledger.refresh_schedules(date(2025, 3, 20))
        assert again.entries_updated == 0

    async def test_current_month_is_pending(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        ledger = LedgerService(directory)

        result = await ledger.refresh_schedules(date(2025, 3, 10))
        assert result.entries_updated == 3

        entries = await schedule_of(directory, loan.id)
        assert [e.status for e in entries[:4]] == ["Deducted", "Deducted", "Pending", "Upcoming"]

        later = await ledger.refresh_schedules(date(2025, 3, 15))
        assert later.entries_updated == 1
        entries = await schedule_of(directory, loan.id)
        assert entries[2].status == "Deducted"

    async def test_refresh_defaults_to_clock_date(self, directory: AsyncSession, create_loan):
        await create_loan()
        result = await LedgerService(directory, clock=fixed_clock).refresh_schedules()
        assert result.as_of == FIXED_NOW.date()
        # Jan and Feb are past, March 15 is in the current month
        assert result.entries_updated == 3

    async def test_refresh_leaves_paid_entries_alone(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        ledger = LedgerService(directory, clock=fixed_clock)
        await ledger.apply_payment(loan.id, "Salary Loan", Decimal("2500"))

        result = await ledger.refresh_schedules(date(2025, 4, 20))
        # Only April moves; Jan-Mar were settled by the payment
        assert result.entries_updated == 1

        entries = await schedule_of(directory, loan.id)
        assert entries[2].status == "Partially Deducted"
        assert entries[2].payment_amount == Decimal("500")
        assert entries[3].status == "Deducted"
        assert entries[3].is_early_payment is False


class TestCompleteLoans:
    async def test_complete_when_deductions_cover_principal(
        self, directory: AsyncSession, create_loan
    ):
        loan = await create_loan()
        ledger = LedgerService(directory)

        await ledger.refresh_schedules(date(2025, 6, 30))
        assert await ledger.complete_loans_if_paid() == 0

        await ledger.refresh_schedules(date(2025, 12, 31))
        assert await ledger.complete_loans_if_paid() == 1

        refreshed = await directory.get(SalaryLoan, loan.id)
        assert refreshed.status == "Completed"
        assert await ledger.complete_loans_if_paid() == 0

    async def test_rounding_tolerance(self, directory: AsyncSession, create_loan):
        # 3 x 3,333.33 = 9,999.99 against a 10,000 principal
        loan = await create_loan(principal=Decimal("10000.00"), months=3)
        ledger = LedgerService(directory, tolerance=Decimal("0.01"))

        await ledger.refresh_schedules(date(2025, 3, 31))
        assert await ledger.complete_loans_if_paid() == 1
        assert (await directory.get(SalaryLoan, loan.id)).status == "Completed"

    async def test_only_approved_loans_complete(self, directory: AsyncSession, create_loan):
        loan = await create_loan(status="Pending", months=2, principal=Decimal("2000.00"))
        ledger = LedgerService(directory)

        await ledger.refresh_schedules(date(2025, 12, 31))
        assert await ledger.complete_loans_if_paid() == 0
        assert (await directory.get(SalaryLoan, loan.id)).status == "Pending"

    async def test_run_maintenance(self, directory: AsyncSession, create_loan):
        loan = await create_loan(model=CarLoan, principal=Decimal("6000.00"), months=6)
        result = await LedgerService(directory).run_maintenance(date(2025, 7, 1))

        assert result.entries_updated == 6
        assert result.loans_completed == 1
        assert (await directory.get(CarLoan, loan.id)).status == "Completed"


class TestApplyPayment:
    """Manual payments waterfall over the schedule, earliest first."""

    async def test_partial_then_completion_of_partial(
        self, directory: AsyncSession, create_loan
    ):
        loan = await create_loan()
        ledger = LedgerService(directory, clock=fixed_clock)

        first = await ledger.apply_payment(loan.id, "Salary Loan", Decimal("2500"))

        assert first.history.payment_amount == Decimal("2500")
        assert first.history.notes == "Early payment of ₱2,500.00"
        assert first.history.payment_method == "Early Payment"
        assert first.history.transaction_id.startswith("EP-")
        assert first.loan_completed is False
        assert first.unallocated == Decimal("0")
        assert len(first.updated_entries) == 3

        entries = await schedule_of(directory, loan.id)
        assert [e.status for e in entries[:4]] == [
            "Deducted",
            "Deducted",
            "Partially Deducted",
            "Upcoming",
        ]
        assert [e.payment_status for e in entries[:3]] == [
            "Fully Paid",
            "Fully Paid",
            "Partially Paid",
        ]
        assert entries[2].payment_amount == Decimal("500")
        assert all(e.is_early_payment for e in entries[:3])
        assert entries[0].actual_deduction_date.date() == FIXED_NOW.date()

        second = await ledger.apply_payment(loan.id, "Salary Loan", Decimal("500"))
        assert [e.id for e in second.updated_entries] == [entries[2].id]

        entries = await schedule_of(directory, loan.id)
        assert entries[2].status == "Deducted"
        assert entries[2].payment_status == "Fully Paid"
        assert entries[2].payment_amount == Decimal("1000")
        assert entries[3].status == "Upcoming"

    async def test_small_payment_tops_up_partial(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        ledger = LedgerService(directory)
        await ledger.apply_payment(loan.id, "Salary Loan", Decimal("300"))
        await ledger.apply_payment(loan.id, "Salary Loan", Decimal("200"))

        entries = await schedule_of(directory, loan.id)
        assert entries[0].status == "Partially Deducted"
        assert entries[0].payment_amount == Decimal("500")
        assert entries[1].status == "Upcoming"

    async def test_payment_skips_already_deducted(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        ledger = LedgerService(directory)
        await ledger.refresh_schedules(date(2025, 2, 28))

        result = await ledger.apply_payment(loan.id, "Salary Loan", Decimal("1000"))

        entries = await schedule_of(directory, loan.id)
        assert [e.id for e in result.updated_entries] == [entries[2].id]
        assert entries[2].is_early_payment is True

    async def test_full_repayment_completes_and_cancels(
        self, directory: AsyncSession, create_loan
    ):
        # Schedule includes interest: 12 x 1,000 against a 10,000 principal
        loan = await create_loan(principal=Decimal("10000.00"), installment=Decimal("1000.00"))
        ledger = LedgerService(directory)

        result = await ledger.apply_payment(
            loan.id, "Salary Loan", Decimal("10000"), notes="Final settlement"
        )

        assert result.loan_completed is True
        assert result.cancelled_count == 2
        assert result.history.notes == "Final settlement"

        entries = await schedule_of(directory, loan.id)
        assert [e.status for e in entries[10:]] == ["Cancelled", "Cancelled"]
        assert all(e.payment_notes == EARLY_COMPLETION_NOTE for e in entries[10:])
        assert all(e.status == "Deducted" for e in entries[:10])
        assert (await directory.get(SalaryLoan, loan.id)).status == "Completed"

    async def test_completion_counts_partial_payments(
        self, directory: AsyncSession, create_loan
    ):
        loan = await create_loan(principal=Decimal("3000.00"), months=3)
        ledger = LedgerService(directory)

        await ledger.apply_payment(loan.id, "Salary Loan", Decimal("1500"))
        result = await ledger.apply_payment(loan.id, "Salary Loan", Decimal("1500"))

        assert result.loan_completed is True
        assert result.cancelled_count == 0

    async def test_overpayment_reports_unallocated(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        result = await LedgerService(directory).apply_payment(
            loan.id, "Salary Loan", Decimal("13000")
        )

        assert result.loan_completed is True
        assert result.unallocated == Decimal("1000")
        entries = await schedule_of(directory, loan.id)
        assert all(e.status == "Deducted" for e in entries)

    async def test_skip_schedule_allocation(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        result = await LedgerService(directory).apply_payment(
            loan.id, "Salary Loan", Decimal("2000"), skip_schedule_allocation=True
        )

        assert result.updated_entries == []
        assert result.loan_completed is False
        assert result.unallocated == Decimal("2000")
        assert await history_count(directory) == 1

        entries = await schedule_of(directory, loan.id)
        assert all(e.status == "Upcoming" for e in entries)

    async def test_payment_by_slug(self, directory: AsyncSession, create_loan):
        loan = await create_loan(model=CarLoan, principal=Decimal("6000.00"), months=6)
        result = await LedgerService(directory).apply_payment(loan.id, "car-loan", "1000")

        assert result.history.loan_type == "Car Loan"
        entries = await schedule_of(directory, loan.id, CarLoanDeduction)
        assert entries[0].status == "Deducted"

    @pytest.mark.parametrize(
        "amount", [Decimal("0"), Decimal("-5"), "abc", "NaN", Decimal("999.999"), "0.001"]
    )
    async def test_invalid_amount(self, directory: AsyncSession, create_loan, amount):
        loan = await create_loan()
        with pytest.raises(InvalidInput):
            await LedgerService(directory).apply_payment(loan.id, "Salary Loan", amount)
        assert await history_count(directory) == 0

    async def test_sub_cent_amount_leaves_schedule_untouched(
        self, directory: AsyncSession, create_loan
    ):
        loan = await create_loan()
        with pytest.raises(InvalidInput):
            await LedgerService(directory).apply_payment(
                loan.id, "Salary Loan", Decimal("999.999")
            )

        entries = await schedule_of(directory, loan.id)
        assert all(e.status == "Upcoming" for e in entries)
        assert all(e.payment_amount is None for e in entries)

    async def test_trailing_zero_cents_accepted(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        result = await LedgerService(directory, clock=fixed_clock).apply_payment(
            loan.id, "Salary Loan", "1000.000"
        )

        assert result.history.payment_amount == Decimal("1000.00")
        assert result.history.notes == "Early payment of ₱1,000.00"
        entries = await schedule_of(directory, loan.id)
        assert entries[0].status == "Deducted"
        assert entries[0].payment_amount == entries[0].amount
        assert result.unallocated == Decimal("0")

    async def test_invalid_loan_type(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        with pytest.raises(InvalidInput):
            await LedgerService(directory).apply_payment(loan.id, "Boat Loan", Decimal("100"))

    async def test_missing_loan(self, directory: AsyncSession):
        with pytest.raises(NotFound):
            await LedgerService(directory).apply_payment(9999, "Salary Loan", Decimal("100"))
        assert await history_count(directory) == 0


class TestLoanSummary:
    async def test_summary_after_partial_payment(self, directory: AsyncSession, create_loan):
        loan = await create_loan()
        ledger = LedgerService(directory)
        await ledger.apply_payment(loan.id, "Salary Loan", Decimal("2500"))

        summary = await ledger.loan_summary(loan.id, "salary-loan")

        assert summary.loan_type is LoanType.SALARY
        assert summary.principal == Decimal("12000.00")
        assert summary.paid_amount == Decimal("2500")
        assert summary.remaining_amount == Decimal("9500")
        assert summary.paid_months == 2
        assert summary.remaining_months == 10
        assert len(summary.entries) == 12
        assert len(summary.history) == 1

    async def test_completed_loan_has_nothing_remaining(
        self, directory: AsyncSession, create_loan
    ):
        loan = await create_loan(principal=Decimal("10000.00"), installment=Decimal("1000.00"))
        ledger = LedgerService(directory)
        await ledger.apply_payment(loan.id, "Salary Loan", Decimal("10000"))

        summary = await ledger.loan_summary(loan.id, "Salary Loan")
        assert summary.status == "Completed"
        assert summary.remaining_amount == Decimal("0")
        assert summary.paid_months == 10
        assert summary.remaining_months == 0

    async def test_missing_loan(self, directory: AsyncSession):
        with pytest.raises(NotFound):
            await LedgerService(directory).loan_summary(1, "Salary Loan")
