"""Sequential approval workflow engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from benefits_engine.errors import Conflict, Forbidden, InvalidInput, NotFound, Unauthorized
from benefits_engine.services.directory import ApproverDirectory
from benefits_engine.services.locking_service import LockingService
from benefits_engine.services.notification_service import (
    DecisionNotice,
    NotificationDispatcher,
)
from benefits_engine.services.state_machine import (
    ApprovalAction,
    RequestStateMachine,
    RequestStatus,
)
from benefits_engine.services.workflows import (
    WORKFLOWS,
    RequestType,
    SideEffectResult,
    WorkflowDefinition,
    get_workflow,
)

logger = logging.getLogger(__name__)

MIN_REJECTION_COMMENT = 5


@dataclass(frozen=True)
class DecisionOutcome:
    """Committed result of one approver decision."""

    request_type: RequestType
    request_id: int
    approval_id: int
    decided_at: datetime
    status: str
    current_approval_level: int
    is_final: bool
    benefits_deducted: bool = False
    credential_token: str | None = None
    notification_dispatched: bool = False


@dataclass(frozen=True)
class PendingRequest:
    """A request waiting on a given approver's level."""

    request_type: RequestType
    request_id: int
    employee_id: str
    current_approval_level: int
    submitted_at: datetime


def parse_action(action: str | ApprovalAction) -> ApprovalAction:
    try:
        return ApprovalAction(action)
    except ValueError:
        raise InvalidInput(f"Invalid action '{action}'") from None


class ApprovalService:
    """Validates and applies approver decisions.

    Each decision is one transaction: the approval record insert, the request
    status/level update and any final-approval side effect commit together or
    not at all. Notifications go out only after the commit.

    Key invariants:
    1. At most one approval record per (request, level); the unique constraint
       turns a lost race into Conflict
    2. current_approval_level never decreases and never moves once terminal
    3. Approved/Rejected requests accept no further decisions
    """

    def __init__(
        self,
        session: AsyncSession,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.session = session
        self.dispatcher = dispatcher
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def decide(
        self,
        request_type: str | RequestType,
        request_id: int,
        actor_id: str | None,
        action: str | ApprovalAction,
        comment: str | None = None,
    ) -> DecisionOutcome:
        """Apply an approve/reject decision from `actor_id`.

        Raises:
            Unauthorized: no caller identity
            InvalidInput: unknown type/action, or reject without a usable comment
            Forbidden: caller is not an approver, or not at the request's level
            NotFound: request does not exist
            Conflict: request is terminal or already decided at this level
        """
        if not actor_id:
            raise Unauthorized("Unauthorized - Please log in")
        workflow = get_workflow(request_type)
        decision = parse_action(action)

        try:
            outcome, notice = await self._apply(workflow, request_id, actor_id, decision, comment)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning(
                "Concurrent decision on %s %s lost the race",
                workflow.request_type.value,
                request_id,
            )
            raise Conflict(
                "This request has already been processed at your approval level"
            ) from None
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "%s %s %s by %s at level %d -> %s (level %d)",
            workflow.label,
            request_id,
            decision.value,
            actor_id,
            notice.approver_level,
            outcome.status,
            outcome.current_approval_level,
        )

        dispatched = await self._notify(notice)
        return replace(outcome, notification_dispatched=dispatched)

    async def _apply(
        self,
        workflow: WorkflowDefinition,
        request_id: int,
        actor_id: str,
        action: ApprovalAction,
        comment: str | None,
    ) -> tuple[DecisionOutcome, DecisionNotice]:
        approver = await ApproverDirectory(self.session).get_approver(actor_id)
        if approver is None:
            raise Forbidden("You do not have approval privileges")

        if action == ApprovalAction.REJECT and (
            comment is None or len(comment.strip()) < MIN_REJECTION_COMMENT
        ):
            raise InvalidInput(
                "A detailed reason is required for rejection "
                f"(at least {MIN_REJECTION_COMMENT} characters)"
            )

        request = await LockingService(self.session).lock_request(
            workflow.request_model, request_id
        )
        if request is None:
            raise NotFound("Request not found")

        if not RequestStateMachine.can_decide(request.status):
            raise Conflict(f"Request is already {request.status.lower()}")

        level = request.current_approval_level
        if approver.numeric_level != level:
            raise Forbidden("You are not authorized to approve/reject at the current level")

        approval_model = workflow.approval_model
        existing = await self.session.execute(
            select(approval_model.id).where(
                approval_model.request_id == request_id,
                approval_model.approval_level == level,
            )
        )
        if existing.first() is not None:
            raise Conflict("This request has already been processed at your approval level")

        transition = RequestStateMachine.apply_decision(
            request.status, level, workflow.max_level, action
        )
        decided_at = self.clock()

        record = approval_model(
            request_id=request_id,
            approver_employee_id=actor_id,
            approval_level=level,
            status=(
                RequestStatus.APPROVED.value
                if action == ApprovalAction.APPROVE
                else RequestStatus.REJECTED.value
            ),
            comment=comment,
            decided_at=decided_at,
        )
        self.session.add(record)

        request.status = transition.status.value
        request.current_approval_level = transition.approval_level
        request.updated_at = decided_at

        side_effect = SideEffectResult()
        if transition.status == RequestStatus.APPROVED:
            side_effect = await workflow.on_final_approval(
                self.session, request, approver, decided_at
            )

        await self.session.flush()

        outcome = DecisionOutcome(
            request_type=workflow.request_type,
            request_id=request_id,
            approval_id=record.id,
            decided_at=decided_at,
            status=request.status,
            current_approval_level=request.current_approval_level,
            is_final=transition.is_final,
            benefits_deducted=side_effect.benefits_deducted,
            credential_token=side_effect.credential_token,
        )
        notice = DecisionNotice(
            request_type=workflow.request_type,
            request_id=request_id,
            submitter_id=request.employee_id,
            is_approved=action == ApprovalAction.APPROVE,
            approver_level=level,
            approver_title=approver.approval_level,
            new_level=transition.approval_level,
            notify_submitter=transition.is_final,
            notify_next_level=(
                transition.status == RequestStatus.PENDING
                and transition.approval_level > level
            ),
        )
        return outcome, notice

    async def _notify(self, notice: DecisionNotice) -> bool:
        """Hand the notice to the dispatcher. Failures never undo the decision."""
        if self.dispatcher is None or not notice.has_recipients:
            return False
        try:
            await self.dispatcher.dispatch(notice)
        except Exception:
            logger.exception(
                "Notification dispatch failed for %s %s",
                notice.request_type.value,
                notice.request_id,
            )
            return False
        return True

    async def pending_for_approver(self, actor_id: str) -> list[PendingRequest]:
        """Pending requests whose current level matches the approver's level."""
        approver = await ApproverDirectory(self.session).get_approver(actor_id)
        if approver is None:
            raise Forbidden("You do not have approval privileges")

        pending: list[PendingRequest] = []
        for workflow in WORKFLOWS.values():
            if approver.numeric_level > workflow.max_level:
                continue
            model = workflow.request_model
            result = await self.session.execute(
                select(model)
                .where(
                    model.status == RequestStatus.PENDING.value,
                    model.current_approval_level == approver.numeric_level,
                )
                .order_by(model.submitted_at, model.id)
            )
            pending.extend(
                PendingRequest(
                    request_type=workflow.request_type,
                    request_id=row.id,
                    employee_id=row.employee_id,
                    current_approval_level=row.current_approval_level,
                    submitted_at=row.submitted_at,
                )
                for row in result.scalars().all()
            )
        return pending

    async def approval_history(
        self, request_type: str | RequestType, request_id: int
    ) -> list:
        """Approval records for one request, lowest level first."""
        workflow = get_workflow(request_type)
        model = workflow.approval_model
        result = await self.session.execute(
            select(model)
            .where(model.request_id == request_id)
            .order_by(model.approval_level)
        )
        return list(result.scalars().all())
