"""Loan deduction schedule and payment history models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from benefits_engine.models.base import Base, TimestampMixin

DEDUCTION_STATUSES = (
    "('Upcoming', 'Pending', 'Deducted', 'Partially Deducted', 'Cancelled')"
)


class DeductionEntryMixin:
    """One scheduled installment of a loan's repayment."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deduction_date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Upcoming")
    actual_deduction_date: Mapped[datetime | None] = mapped_column(nullable=True)
    is_early_payment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    payment_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    payment_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    payment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)


def _deduction_args(table: str) -> tuple:
    return (
        CheckConstraint(f"status IN {DEDUCTION_STATUSES}", name=f"{table}_status_check"),
        CheckConstraint(
            "payment_status IS NULL OR payment_status IN ('Partially Paid', 'Fully Paid')",
            name=f"{table}_payment_status_check",
        ),
        CheckConstraint("amount > 0", name=f"{table}_amount_check"),
        Index(f"ix_{table}_loan_date", "loan_id", "deduction_date"),
    )


class HousingLoanDeduction(Base, DeductionEntryMixin):
    __tablename__ = "housing_loan_deduction"
    __table_args__ = _deduction_args("housing_loan_deduction")

    loan_id: Mapped[int] = mapped_column(
        ForeignKey("housing_loan.id", ondelete="CASCADE"), nullable=False
    )


class CarLoanDeduction(Base, DeductionEntryMixin):
    __tablename__ = "car_loan_deduction"
    __table_args__ = _deduction_args("car_loan_deduction")

    loan_id: Mapped[int] = mapped_column(
        ForeignKey("car_loan.id", ondelete="CASCADE"), nullable=False
    )


class SalaryLoanDeduction(Base, DeductionEntryMixin):
    __tablename__ = "salary_loan_deduction"
    __table_args__ = _deduction_args("salary_loan_deduction")

    loan_id: Mapped[int] = mapped_column(
        ForeignKey("salary_loan.id", ondelete="CASCADE"), nullable=False
    )


class LoanPaymentHistory(Base, TimestampMixin):
    """Append-only audit trail of manual loan payments.

    Written only from the same transaction that allocates the payment onto
    the deduction schedule.
    """

    __tablename__ = "loan_payment_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    loan_id: Mapped[int] = mapped_column(nullable=False)
    loan_type: Mapped[str] = mapped_column(String(20), nullable=False)
    payment_amount: Mapped[Decimal] = mapped_column(nullable=False)
    payment_date: Mapped[datetime] = mapped_column(nullable=False)
    transaction_id: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_method: Mapped[str] = mapped_column(
        String(30), nullable=False, default="Early Payment"
    )

    __table_args__ = (
        UniqueConstraint("transaction_id", name="loan_payment_history_txn_unique"),
        CheckConstraint("payment_amount > 0", name="loan_payment_history_amount_check"),
        CheckConstraint(
            "loan_type IN ('Salary Loan', 'Car Loan', 'Housing Loan')",
            name="loan_payment_history_type_check",
        ),
        Index("ix_loan_payment_history_loan", "loan_type", "loan_id"),
    )
