"""Request status state machine for the sequential approval chain."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RequestStatus(str, Enum):
    """Request status values."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"  # loans only


class ApprovalAction(str, Enum):
    """Approver decisions."""

    APPROVE = "approve"
    REJECT = "reject"


class DeductionStatus(str, Enum):
    """Deduction entry status values."""

    UPCOMING = "Upcoming"
    PENDING = "Pending"
    DEDUCTED = "Deducted"
    PARTIALLY_DEDUCTED = "Partially Deducted"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    """Payment status recorded on a deduction entry."""

    PARTIALLY_PAID = "Partially Paid"
    FULLY_PAID = "Fully Paid"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


@dataclass(frozen=True)
class Transition:
    """Result of applying one approver decision."""

    status: RequestStatus
    approval_level: int
    is_final: bool


class RequestStateMachine:
    """State machine for request status transitions.

    Allowed transitions:
    - Pending → Pending (approve below the max level, level + 1)
    - Pending → Approved (approve at the max level)
    - Pending → Rejected (reject at any level)
    - Pending → Cancelled (employee cancellation)
    - Approved → Cancelled (employee cancellation of a booking)
    - Approved → Completed (loan fully repaid)
    """

    # Keyed by the stored column values
    VALID_TRANSITIONS: dict[str, list[str]] = {
        RequestStatus.PENDING.value: [
            RequestStatus.PENDING.value,
            RequestStatus.APPROVED.value,
            RequestStatus.REJECTED.value,
            RequestStatus.CANCELLED.value,
        ],
        RequestStatus.APPROVED.value: [
            RequestStatus.CANCELLED.value,
            RequestStatus.COMPLETED.value,
        ],
        RequestStatus.REJECTED.value: [],
        RequestStatus.CANCELLED.value: [],
        RequestStatus.COMPLETED.value: [],
    }

    # No approver decision is accepted outside these statuses
    DECIDABLE = {RequestStatus.PENDING.value}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def can_decide(cls, status: str) -> bool:
        """Check if an approver decision is accepted in this status."""
        return status in cls.DECIDABLE

    @classmethod
    def apply_decision(
        cls,
        status: str,
        level: int,
        max_level: int,
        action: ApprovalAction,
    ) -> Transition:
        """Compute the next (status, level) for a decision at `level`.

        Rejection is terminal and keeps the level. Approval advances the level
        until `max_level`, where it becomes terminal Approved.
        """
        if not cls.can_decide(status):
            raise InvalidTransitionError(status, "decision", "request is not pending")
        if level < 1 or level > max_level:
            raise InvalidTransitionError(
                status, "decision", f"level {level} outside 1..{max_level}"
            )

        if action == ApprovalAction.REJECT:
            return Transition(RequestStatus.REJECTED, level, is_final=True)
        if level < max_level:
            return Transition(RequestStatus.PENDING, level + 1, is_final=False)
        return Transition(RequestStatus.APPROVED, level, is_final=True)
