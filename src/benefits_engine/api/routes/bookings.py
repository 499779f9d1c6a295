"""Staff house booking endpoints."""

from fastapi import APIRouter

from benefits_engine.api.dependencies import CurrentEmployee, DbSession
from benefits_engine.api.schemas import (
    CancelBookingRequest,
    CancellationResponse,
    ErrorResponse,
)
from benefits_engine.services.booking_service import BookingService

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "/{booking_id}/cancel",
    response_model=CancellationResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def cancel_booking(
    db: DbSession,
    employee_id: CurrentEmployee,
    booking_id: int,
    payload: CancelBookingRequest | None = None,
) -> CancellationResponse:
    """Cancel the caller's own pending or approved booking."""
    reason = payload.reason if payload is not None else None
    result = await BookingService(db).cancel_booking(booking_id, employee_id, reason)
    return CancellationResponse.model_validate(result)
