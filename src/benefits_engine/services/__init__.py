"""Benefits engine services."""

from benefits_engine.services.state_machine import (
    ApprovalAction,
    DeductionStatus,
    InvalidTransitionError,
    PaymentStatus,
    RequestStateMachine,
    RequestStatus,
)
from benefits_engine.services.approval_service import ApprovalService, DecisionOutcome
from benefits_engine.services.booking_service import BookingService
from benefits_engine.services.ledger_service import LedgerService, LoanType
from benefits_engine.services.locking_service import LockingService
from benefits_engine.services.notification_service import (
    DatabaseNotificationDispatcher,
    NotificationInbox,
)
from benefits_engine.services.workflows import WORKFLOWS, RequestType

__all__ = [
    "ApprovalAction",
    "ApprovalService",
    "BookingService",
    "DatabaseNotificationDispatcher",
    "DecisionOutcome",
    "DeductionStatus",
    "InvalidTransitionError",
    "LedgerService",
    "LoanType",
    "LockingService",
    "NotificationInbox",
    "PaymentStatus",
    "RequestStateMachine",
    "RequestStatus",
    "RequestType",
    "WORKFLOWS",
]
