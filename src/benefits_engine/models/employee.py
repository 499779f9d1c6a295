"""Employee directory and approver models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from benefits_engine.models.base import Base, TimestampMixin, utcnow


class Employee(Base, TimestampMixin):
    """Employee record with benefit balance."""

    __tablename__ = "employees"

    employee_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[str | None] = mapped_column(String(150), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    benefits_package: Mapped[str | None] = mapped_column(String(100), nullable=True)
    benefits_amount_remaining: Mapped[Decimal | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Approver(Base):
    """Approver directory entry.

    `approval_level` is the human title ("Department Head", "HR Manager", ...);
    `numeric_level` is the rank in the sequential chain (1 = first reviewer).
    """

    __tablename__ = "approvers"

    employee_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("employees.employee_id", ondelete="CASCADE"),
        primary_key=True,
    )
    approval_level: Mapped[str] = mapped_column(String(100), nullable=False)
    numeric_level: Mapped[int] = mapped_column(nullable=False)
    can_approve: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    employee: Mapped[Employee] = relationship(lazy="joined", innerjoin=True)
