"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Approval schemas
# ============================================================================


class DecisionRequest(BaseModel):
    """Body of an approve/reject call."""

    request_id: int
    comment: str | None = Field(default=None, max_length=2000)


class DecisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_type: str
    request_id: int
    approval_id: int
    decided_at: datetime
    status: str
    current_approval_level: int
    is_final: bool
    benefits_deducted: bool
    notification_dispatched: bool


class PendingRequestResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_type: str
    request_id: int
    employee_id: str
    current_approval_level: int
    submitted_at: datetime


class ApprovalRecordResponse(BaseModel):
    """One approver decision."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    request_id: int
    approver_employee_id: str
    approval_level: int
    status: str
    comment: str | None = None
    decided_at: datetime


# ============================================================================
# Loan ledger schemas
# ============================================================================


class PaymentRequest(BaseModel):
    """Manual loan payment recorded by a ledger administrator."""

    loan_id: int
    loan_type: str
    payment_amount: Decimal
    notes: str | None = None
    skip_schedule_allocation: bool = False


class DeductionEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    loan_id: int
    deduction_date: date
    amount: Decimal
    status: str
    actual_deduction_date: datetime | None = None
    is_early_payment: bool
    payment_status: str | None = None
    payment_amount: Decimal | None = None
    payment_notes: str | None = None


class PaymentHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    loan_id: int
    loan_type: str
    payment_amount: Decimal
    payment_date: datetime
    transaction_id: str
    notes: str | None = None
    payment_method: str


class PaymentResponse(BaseModel):
    payment: PaymentHistoryResponse
    updated_entries: list[DeductionEntryResponse]
    cancelled_count: int
    loan_completed: bool
    unallocated_amount: Decimal


class RefreshRequest(BaseModel):
    as_of: date | None = None


class RefreshResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    as_of: date
    entries_updated: int
    loans_completed: int


class LoanSummaryResponse(BaseModel):
    """Loan with its schedule, repayment totals and payment history."""

    model_config = ConfigDict(from_attributes=True)

    loan_id: int
    loan_type: str
    employee_id: str
    principal: Decimal
    status: str
    paid_amount: Decimal
    remaining_amount: Decimal
    paid_months: int
    remaining_months: int
    entries: list[DeductionEntryResponse]
    history: list[PaymentHistoryResponse]


# ============================================================================
# Booking schemas
# ============================================================================


class CancelBookingRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class CancellationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    booking_id: int
    status: str
    cancellation_id: int
    cancelled_at: datetime
    reason: str


# ============================================================================
# Notification schemas
# ============================================================================


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: str
    reference_id: int
    reference_type: str
    is_read: bool
    created_at: datetime


class InboxResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int


class MarkReadRequest(BaseModel):
    notification_id: int | None = None
    mark_all_as_read: bool = False


class MarkReadResponse(BaseModel):
    updated_count: int


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
