"""Employee-initiated staff house booking cancellation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from benefits_engine.errors import Conflict, NotFound, Unauthorized
from benefits_engine.models import BookingCancellation, HouseBooking
from benefits_engine.services.locking_service import LockingService
from benefits_engine.services.state_machine import RequestStateMachine, RequestStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CancellationResult:
    booking_id: int
    status: str
    cancellation_id: int
    cancelled_at: datetime
    reason: str


def cancellation_text(reason: str | None) -> str:
    if reason and reason.strip():
        return f"Booking cancelled by employee. Reason: {reason.strip()}"
    return "Booking cancelled by employee"


class BookingService:
    """Cancellation is its own terminal transition with its own record.

    Approval records stay approver-only; the cancellation row captures who
    cancelled and at which approval level the booking stood.
    """

    def __init__(
        self,
        session: AsyncSession,
        clock: Callable[[], datetime] | None = None,
    ):
        self.session = session
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def cancel_booking(
        self,
        booking_id: int,
        employee_id: str | None,
        reason: str | None = None,
    ) -> CancellationResult:
        if not employee_id:
            raise Unauthorized("Unauthorized - Please log in")

        try:
            result = await self._cancel(booking_id, employee_id, reason)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("House booking %s cancelled by %s", booking_id, employee_id)
        return result

    async def _cancel(
        self, booking_id: int, employee_id: str, reason: str | None
    ) -> CancellationResult:
        booking = await LockingService(self.session).lock_request(HouseBooking, booking_id)
        # Someone else's booking looks the same as a missing one
        if booking is None or booking.employee_id != employee_id:
            raise NotFound("Booking not found or you don't have permission to cancel it")

        if not RequestStateMachine.can_transition(
            booking.status, RequestStatus.CANCELLED.value
        ):
            raise Conflict(f"Booking is already {booking.status.lower()}")

        cancelled_at = self.clock()
        text = cancellation_text(reason)

        cancellation = BookingCancellation(
            booking_id=booking.id,
            employee_id=employee_id,
            approval_level=booking.current_approval_level,
            reason=text,
            cancelled_at=cancelled_at,
        )
        self.session.add(cancellation)

        booking.status = RequestStatus.CANCELLED.value
        booking.updated_at = cancelled_at
        await self.session.flush()

        return CancellationResult(
            booking_id=booking.id,
            status=booking.status,
            cancellation_id=cancellation.id,
            cancelled_at=cancelled_at,
            reason=text,
        )
