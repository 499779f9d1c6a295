"""Approval workflow endpoints."""

from fastapi import APIRouter, status

from benefits_engine.api.dependencies import CurrentEmployee, DbSession, Dispatcher
from benefits_engine.api.schemas import (
    ApprovalRecordResponse,
    DecisionRequest,
    DecisionResponse,
    ErrorResponse,
    PendingRequestResponse,
)
from benefits_engine.services.approval_service import ApprovalService

router = APIRouter(prefix="/approvals", tags=["approvals"])

_ERRORS = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


@router.get(
    "/pending",
    response_model=list[PendingRequestResponse],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
async def list_pending(
    db: DbSession,
    employee_id: CurrentEmployee,
) -> list[PendingRequestResponse]:
    """Requests waiting on the caller's approval level."""
    pending = await ApprovalService(db).pending_for_approver(employee_id)
    return [
        PendingRequestResponse(
            request_type=item.request_type.value,
            request_id=item.request_id,
            employee_id=item.employee_id,
            current_approval_level=item.current_approval_level,
            submitted_at=item.submitted_at,
        )
        for item in pending
    ]


@router.get(
    "/{request_type}/{request_id}/history",
    response_model=list[ApprovalRecordResponse],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
async def approval_history(
    db: DbSession,
    employee_id: CurrentEmployee,
    request_type: str,
    request_id: int,
) -> list[ApprovalRecordResponse]:
    """Decisions recorded so far on one request, lowest level first."""
    records = await ApprovalService(db).approval_history(request_type, request_id)
    return [ApprovalRecordResponse.model_validate(r) for r in records]


@router.post(
    "/{request_type}/{action}",
    response_model=DecisionResponse,
    status_code=status.HTTP_200_OK,
    responses=_ERRORS,
)
async def decide(
    db: DbSession,
    employee_id: CurrentEmployee,
    dispatcher: Dispatcher,
    request_type: str,
    action: str,
    payload: DecisionRequest,
) -> DecisionResponse:
    """Approve or reject a request at the caller's approval level."""
    service = ApprovalService(db, dispatcher=dispatcher)
    outcome = await service.decide(
        request_type,
        payload.request_id,
        employee_id,
        action,
        payload.comment,
    )
    return DecisionResponse(
        request_type=outcome.request_type.value,
        request_id=outcome.request_id,
        approval_id=outcome.approval_id,
        decided_at=outcome.decided_at,
        status=outcome.status,
        current_approval_level=outcome.current_approval_level,
        is_final=outcome.is_final,
        benefits_deducted=outcome.benefits_deducted,
        notification_dispatched=outcome.notification_dispatched,
    )
