"""Benefit request and approval record models.

Each request type has its own table plus an append-only approval table keyed
by (request, approval_level).
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from benefits_engine.models.base import Base, TimestampMixin, utcnow

REQUEST_STATUSES = "('Pending', 'Approved', 'Rejected', 'Cancelled')"
LOAN_STATUSES = "('Pending', 'Approved', 'Rejected', 'Cancelled', 'Completed')"


class BenefitRequestMixin:
    """Columns shared by every request table."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Pending")
    current_approval_level: Mapped[int] = mapped_column(nullable=False, default=1)
    submitted_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    @declared_attr
    def employee_id(cls) -> Mapped[str]:
        return mapped_column(
            String(64),
            ForeignKey("employees.employee_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )


class LoanMixin(BenefitRequestMixin):
    """Columns shared by the three loan tables."""

    loan_amount: Mapped[Decimal] = mapped_column(nullable=False)
    repayment_term: Mapped[int] = mapped_column(nullable=False)

    @property
    def principal(self) -> Decimal:
        return self.loan_amount


def _request_checks(table: str, statuses: str = REQUEST_STATUSES) -> tuple:
    return (
        CheckConstraint(f"status IN {statuses}", name=f"{table}_status_check"),
        CheckConstraint(
            "current_approval_level >= 1", name=f"{table}_approval_level_check"
        ),
    )


class MedicalReimbursement(Base, BenefitRequestMixin):
    """Medical expense reimbursement request (4 approval levels)."""

    __tablename__ = "medical_reimbursement"
    __table_args__ = _request_checks("medical_reimbursement")

    total_amount: Mapped[Decimal] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class MedicalLoa(Base, BenefitRequestMixin):
    """Medical letter of authorization request (single HR approval)."""

    __tablename__ = "medical_loa"
    __table_args__ = _request_checks("medical_loa")

    hospital_name: Mapped[str] = mapped_column(String(200), nullable=False)
    visit_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason_type: Mapped[str] = mapped_column(String(100), nullable=False)
    preferred_doctor: Mapped[str | None] = mapped_column(String(200), nullable=True)
    credential_token: Mapped[str | None] = mapped_column(Text, nullable=True)


class HousingLoan(Base, LoanMixin):
    """Housing loan request."""

    __tablename__ = "housing_loan"
    __table_args__ = _request_checks("housing_loan", LOAN_STATUSES)

    property_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    property_address: Mapped[str | None] = mapped_column(Text, nullable=True)


class CarLoan(Base, LoanMixin):
    """Car loan request."""

    __tablename__ = "car_loan"
    __table_args__ = _request_checks("car_loan", LOAN_STATUSES)

    car_make: Mapped[str | None] = mapped_column(String(100), nullable=True)
    car_model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    car_year: Mapped[int | None] = mapped_column(nullable=True)


class SalaryLoan(Base, LoanMixin):
    """Salary loan request."""

    __tablename__ = "salary_loan"
    __table_args__ = _request_checks("salary_loan", LOAN_STATUSES)

    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)


class HouseBooking(Base, BenefitRequestMixin):
    """Staff house booking request (2 approval levels)."""

    __tablename__ = "house_booking"
    __table_args__ = (
        *_request_checks("house_booking"),
        CheckConstraint("check_out > check_in", name="house_booking_dates_check"),
    )

    house_name: Mapped[str] = mapped_column(String(100), nullable=False)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    guests: Mapped[int] = mapped_column(nullable=False, default=1)


# ============================================================================
# Approval records
# ============================================================================


class ApprovalRecordMixin:
    """One approver decision at one level. Immutable once written."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    approval_level: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(nullable=False)

    @declared_attr
    def approver_employee_id(cls) -> Mapped[str]:
        return mapped_column(
            String(64),
            ForeignKey("employees.employee_id"),
            nullable=False,
        )


def _approval_args(table: str) -> tuple:
    return (
        UniqueConstraint("request_id", "approval_level", name=f"{table}_one_per_level"),
        CheckConstraint(
            "status IN ('Approved', 'Rejected')", name=f"{table}_status_check"
        ),
    )


class MedicalReimbursementApproval(Base, ApprovalRecordMixin):
    __tablename__ = "medical_reimbursement_approval"
    __table_args__ = _approval_args("medical_reimbursement_approval")

    request_id: Mapped[int] = mapped_column(
        ForeignKey("medical_reimbursement.id", ondelete="CASCADE"), nullable=False
    )


class MedicalLoaApproval(Base, ApprovalRecordMixin):
    __tablename__ = "medical_loa_approval"
    __table_args__ = _approval_args("medical_loa_approval")

    request_id: Mapped[int] = mapped_column(
        ForeignKey("medical_loa.id", ondelete="CASCADE"), nullable=False
    )


class HousingLoanApproval(Base, ApprovalRecordMixin):
    __tablename__ = "housing_loan_approval"
    __table_args__ = _approval_args("housing_loan_approval")

    request_id: Mapped[int] = mapped_column(
        ForeignKey("housing_loan.id", ondelete="CASCADE"), nullable=False
    )


class CarLoanApproval(Base, ApprovalRecordMixin):
    __tablename__ = "car_loan_approval"
    __table_args__ = _approval_args("car_loan_approval")

    request_id: Mapped[int] = mapped_column(
        ForeignKey("car_loan.id", ondelete="CASCADE"), nullable=False
    )


class SalaryLoanApproval(Base, ApprovalRecordMixin):
    __tablename__ = "salary_loan_approval"
    __table_args__ = _approval_args("salary_loan_approval")

    request_id: Mapped[int] = mapped_column(
        ForeignKey("salary_loan.id", ondelete="CASCADE"), nullable=False
    )


class HouseBookingApproval(Base, ApprovalRecordMixin):
    __tablename__ = "house_booking_approval"
    __table_args__ = _approval_args("house_booking_approval")

    request_id: Mapped[int] = mapped_column(
        ForeignKey("house_booking.id", ondelete="CASCADE"), nullable=False
    )


class BookingCancellation(Base, TimestampMixin):
    """Employee-initiated cancellation of a staff house booking."""

    __tablename__ = "house_booking_cancellation"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    booking_id: Mapped[int] = mapped_column(
        ForeignKey("house_booking.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    employee_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("employees.employee_id"), nullable=False
    )
    approval_level: Mapped[int] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    cancelled_at: Mapped[datetime] = mapped_column(nullable=False)
