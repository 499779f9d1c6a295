"""Read-only access to the approver directory."""

from __future__ import annotations

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from benefits_engine.models import Approver, Employee

LEDGER_ADMIN_TITLE = "HR Manager"


class ApproverDirectory:
    """Resolves identities to approval authority.

    The engine never writes to the directory.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_approver(self, employee_id: str) -> Approver | None:
        """Return the approver entry if this identity may approve at all."""
        result = await self.session.execute(
            select(Approver).where(
                Approver.employee_id == employee_id,
                Approver.can_approve.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def approvers_at_level(self, level: int) -> list[Approver]:
        """All active approvers for a numeric level."""
        result = await self.session.execute(
            select(Approver)
            .where(Approver.numeric_level == level, Approver.can_approve.is_(True))
            .order_by(Approver.employee_id)
        )
        return list(result.scalars().all())

    async def staffed_levels(self) -> set[int]:
        """Numeric levels that have at least one active approver."""
        result = await self.session.execute(
            select(Approver.numeric_level)
            .where(Approver.can_approve.is_(True))
            .distinct()
        )
        return set(result.scalars().all())

    async def is_ledger_admin(self, employee_id: str) -> bool:
        """Ledger administrators may record payments and refresh schedules.

        An HR Manager approver, or any employee whose position reads as an
        HR admin or HR manager.
        """
        result = await self.session.execute(
            select(Employee.employee_id)
            .outerjoin(Approver, Approver.employee_id == Employee.employee_id)
            .where(
                Employee.employee_id == employee_id,
                or_(
                    Approver.approval_level == LEDGER_ADMIN_TITLE,
                    Employee.position.like("%HR%Admin%"),
                    Employee.position.like("%HR%Manager%"),
                ),
            )
        )
        return result.first() is not None
