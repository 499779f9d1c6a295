"""Post-commit notifications for approval decisions.

The approval engine hands a `DecisionNotice` to a dispatcher only after its
transaction has committed. Dispatchers may fail; the engine logs and moves on.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Protocol, runtime_checkable

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from benefits_engine.errors import InvalidInput, NotFound
from benefits_engine.models import Notification
from benefits_engine.services.directory import ApproverDirectory
from benefits_engine.services.workflows import WORKFLOWS, RequestType, token_number

logger = logging.getLogger(__name__)

CLAIM_WINDOW = timedelta(days=7)

CLAIMABLE_TYPES = {
    RequestType.HOUSING_LOAN,
    RequestType.CAR_LOAN,
    RequestType.SALARY_LOAN,
    RequestType.MEDICAL_REIMBURSEMENT,
}


@dataclass(frozen=True)
class DecisionNotice:
    """Who should hear about a committed decision."""

    request_type: RequestType
    request_id: int
    submitter_id: str
    is_approved: bool
    approver_level: int
    approver_title: str
    new_level: int
    notify_submitter: bool
    notify_next_level: bool

    @property
    def has_recipients(self) -> bool:
        return self.notify_submitter or self.notify_next_level


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Delivers decision notices (in-app, email, ...)."""

    async def dispatch(self, notice: DecisionNotice) -> None:
        ...


def _format_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def submitter_content(notice: DecisionNotice, now: datetime) -> tuple[str, str, str]:
    """Return (type, title, message) for the submitter's notification."""
    label = WORKFLOWS[notice.request_type].label
    token = token_number(notice.request_type, notice.request_id)

    if not notice.is_approved:
        return (
            "request-rejected",
            f"{label} Request Rejected",
            f"Your {label.lower()} request ({token}) has been rejected by "
            f"{notice.approver_title}. Please check the comments for details.",
        )

    if notice.request_type in CLAIMABLE_TYPES:
        message = (
            f"Your {label.lower()} request ({token}) has been approved. You can now "
            "come to our HR office and claim the money within a week "
            f"({_format_date(now)} to {_format_date(now + CLAIM_WINDOW)})."
        )
    elif notice.request_type == RequestType.MEDICAL_LOA:
        message = (
            f"Your {label} request ({token}) has been approved. Please download the "
            "QR code and bring it to the admission desk at our partner hospitals "
            "at your date of consultation."
        )
    else:
        message = f"Your {label.lower()} request ({token}) has been approved."
    return "request-approved", f"{label} Request Approved", message


def approver_content(notice: DecisionNotice) -> tuple[str, str, str]:
    """Return (type, title, message) for next-level approvers."""
    label = WORKFLOWS[notice.request_type].label
    token = token_number(notice.request_type, notice.request_id)
    return (
        "approval-required",
        f"New {label} Request Requires Your Approval",
        f"A {label.lower()} request ({token}) requires your approval.",
    )


class DatabaseNotificationDispatcher:
    """Persist in-app notifications in their own transaction."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def dispatch(self, notice: DecisionNotice) -> None:
        now = self.clock()
        async with self.session_factory() as session:
            try:
                created = await self._write(session, notice, now)
                await session.commit()
            except Exception:
                await session.rollback()
                raise

        logger.info(
            "Created %d notification(s) for %s %s",
            created,
            notice.request_type.value,
            notice.request_id,
        )

    async def _write(
        self, session: AsyncSession, notice: DecisionNotice, now: datetime
    ) -> int:
        created = 0
        if notice.notify_submitter:
            kind, title, message = submitter_content(notice, now)
            session.add(
                Notification(
                    employee_id=notice.submitter_id,
                    type=kind,
                    title=title,
                    message=message,
                    reference_id=notice.request_id,
                    reference_type=notice.request_type.value,
                    created_at=now,
                )
            )
            created += 1

        if notice.notify_next_level:
            approvers = await ApproverDirectory(session).approvers_at_level(
                notice.new_level
            )
            if not approvers:
                logger.warning(
                    "No approvers found for %s %s at level %d",
                    notice.request_type.value,
                    notice.request_id,
                    notice.new_level,
                )
            kind, title, message = approver_content(notice)
            for approver in approvers:
                session.add(
                    Notification(
                        employee_id=approver.employee_id,
                        type=kind,
                        title=title,
                        message=message,
                        reference_id=notice.request_id,
                        reference_type=notice.request_type.value,
                        created_at=now,
                    )
                )
                created += 1
        return created


# ============================================================================
# Employee inbox
# ============================================================================

INBOX_LIMIT = 50


@dataclass(frozen=True)
class Inbox:
    notifications: list
    unread_count: int


class NotificationInbox:
    """An employee's view of their own notifications."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_for(self, employee_id: str, limit: int = INBOX_LIMIT) -> Inbox:
        """Newest notifications first, plus the total unread count."""
        result = await self.session.execute(
            select(Notification)
            .where(Notification.employee_id == employee_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        unread = await self.session.scalar(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.employee_id == employee_id,
                Notification.is_read.is_(False),
            )
        )
        return Inbox(notifications=list(result.scalars().all()), unread_count=unread or 0)

    async def mark_read(
        self,
        employee_id: str,
        notification_id: int | None = None,
        mark_all: bool = False,
    ) -> int:
        """Mark one notification, or all unread ones, as read.

        Returns the number of notifications updated.
        """
        if mark_all:
            query = update(Notification).where(
                Notification.employee_id == employee_id,
                Notification.is_read.is_(False),
            )
        elif notification_id is not None:
            query = update(Notification).where(
                Notification.id == notification_id,
                Notification.employee_id == employee_id,
            )
        else:
            raise InvalidInput("Either notification_id or mark_all_as_read is required")

        try:
            result = await self.session.execute(
                query.values(is_read=True).execution_options(synchronize_session="evaluate")
            )
            updated = result.rowcount
            if not mark_all and updated == 0:
                raise NotFound("Notification not found or not authorized to update")
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return updated
