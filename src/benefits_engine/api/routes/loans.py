"""Loan repayment ledger endpoints."""

from fastapi import APIRouter, status

from benefits_engine.api.dependencies import CurrentEmployee, DbSession
from benefits_engine.api.schemas import (
    DeductionEntryResponse,
    ErrorResponse,
    LoanSummaryResponse,
    PaymentHistoryResponse,
    PaymentRequest,
    PaymentResponse,
    RefreshRequest,
    RefreshResponse,
)
from benefits_engine.errors import Forbidden
from benefits_engine.services.directory import ApproverDirectory
from benefits_engine.services.ledger_service import LedgerService

router = APIRouter(prefix="/loans", tags=["loans"])

_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


async def _require_ledger_admin(db: DbSession, employee_id: str) -> None:
    if not await ApproverDirectory(db).is_ledger_admin(employee_id):
        raise Forbidden("Only HR administrators can manage loan deductions")


@router.post(
    "/payments",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses=_ERRORS,
)
async def record_payment(
    db: DbSession,
    employee_id: CurrentEmployee,
    payload: PaymentRequest,
) -> PaymentResponse:
    """Record a manual payment and allocate it onto the deduction schedule."""
    await _require_ledger_admin(db, employee_id)
    result = await LedgerService(db).apply_payment(
        payload.loan_id,
        payload.loan_type,
        payload.payment_amount,
        notes=payload.notes,
        skip_schedule_allocation=payload.skip_schedule_allocation,
    )
    return PaymentResponse(
        payment=PaymentHistoryResponse.model_validate(result.history),
        updated_entries=[
            DeductionEntryResponse.model_validate(e) for e in result.updated_entries
        ],
        cancelled_count=result.cancelled_count,
        loan_completed=result.loan_completed,
        unallocated_amount=result.unallocated,
    )


@router.post(
    "/refresh-schedules",
    response_model=RefreshResponse,
    responses=_ERRORS,
)
async def refresh_schedules(
    db: DbSession,
    employee_id: CurrentEmployee,
    payload: RefreshRequest | None = None,
) -> RefreshResponse:
    """Update date-driven deduction statuses and close repaid loans."""
    await _require_ledger_admin(db, employee_id)
    as_of = payload.as_of if payload is not None else None
    result = await LedgerService(db).run_maintenance(as_of)
    return RefreshResponse.model_validate(result)


@router.get(
    "/{loan_type}/{loan_id}",
    response_model=LoanSummaryResponse,
    responses=_ERRORS,
)
async def get_loan_summary(
    db: DbSession,
    employee_id: CurrentEmployee,
    loan_type: str,
    loan_id: int,
) -> LoanSummaryResponse:
    """Deduction schedule and repayment totals for one loan."""
    summary = await LedgerService(db).loan_summary(loan_id, loan_type)
    if summary.employee_id != employee_id:
        await _require_ledger_admin(db, employee_id)

    return LoanSummaryResponse(
        loan_id=summary.loan_id,
        loan_type=summary.loan_type.value,
        employee_id=summary.employee_id,
        principal=summary.principal,
        status=summary.status,
        paid_amount=summary.paid_amount,
        remaining_amount=summary.remaining_amount,
        paid_months=summary.paid_months,
        remaining_months=summary.remaining_months,
        entries=[DeductionEntryResponse.model_validate(e) for e in summary.entries],
        history=[PaymentHistoryResponse.model_validate(h) for h in summary.history],
    )
