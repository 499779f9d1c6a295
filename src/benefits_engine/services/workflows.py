"""Per-request-type workflow configuration.

One table drives the approval engine: which store model and approval model a
request type uses, how many levels its chain has, and what happens inside the
approving transaction when the last level approves.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from benefits_engine.errors import InvalidInput
from benefits_engine.models import (
    Approver,
    CarLoan,
    CarLoanApproval,
    Employee,
    HouseBooking,
    HouseBookingApproval,
    HousingLoan,
    HousingLoanApproval,
    MedicalLoa,
    MedicalLoaApproval,
    MedicalReimbursement,
    MedicalReimbursementApproval,
    SalaryLoan,
    SalaryLoanApproval,
)

logger = logging.getLogger(__name__)


class RequestType(str, Enum):
    """Request type slugs as used in URLs and notifications."""

    MEDICAL_REIMBURSEMENT = "medical-reimbursement"
    MEDICAL_LOA = "medical-loa"
    HOUSING_LOAN = "housing-loan"
    CAR_LOAN = "car-loan"
    SALARY_LOAN = "salary-loan"
    HOUSE_BOOKING = "house-booking"


@dataclass(frozen=True)
class SideEffectResult:
    """What a final-approval handler changed."""

    benefits_deducted: bool = False
    credential_token: str | None = None


class FinalApprovalHandler(Protocol):
    """Runs inside the approving transaction when the last level approves."""

    async def __call__(
        self,
        session: AsyncSession,
        request: object,
        approver: Approver,
        decided_at: datetime,
    ) -> SideEffectResult:
        ...


class NoSideEffect:
    async def __call__(
        self,
        session: AsyncSession,
        request: object,
        approver: Approver,
        decided_at: datetime,
    ) -> SideEffectResult:
        return SideEffectResult()


class DeductBenefitBalance:
    """Deduct a reimbursement's total from the requester's benefit balance.

    The balance is floored at zero. Employees without a benefits package (or
    with no recorded balance) are left untouched.
    """

    async def __call__(
        self,
        session: AsyncSession,
        request: MedicalReimbursement,
        approver: Approver,
        decided_at: datetime,
    ) -> SideEffectResult:
        result = await session.execute(
            select(Employee)
            .where(Employee.employee_id == request.employee_id)
            .with_for_update()
        )
        employee = result.scalar_one_or_none()
        if (
            employee is None
            or not employee.benefits_package
            or employee.benefits_amount_remaining is None
        ):
            return SideEffectResult()

        remaining = Decimal(employee.benefits_amount_remaining)
        new_remaining = max(Decimal("0"), remaining - Decimal(request.total_amount))
        employee.benefits_amount_remaining = new_remaining
        employee.updated_at = decided_at

        logger.info(
            "Medical reimbursement %s approved: deducted %s from %s, remaining %s",
            request.id,
            request.total_amount,
            employee.employee_id,
            new_remaining,
        )
        return SideEffectResult(benefits_deducted=True)


class IssueLoaCredential:
    """Write the QR credential payload onto an approved medical LOA.

    The payload is built only from already-validated data and the decision
    timestamp, so it is deterministic for a given decision. Rendering the QR
    image is left to the presentation layer.
    """

    async def __call__(
        self,
        session: AsyncSession,
        request: MedicalLoa,
        approver: Approver,
        decided_at: datetime,
    ) -> SideEffectResult:
        patient = await session.get(Employee, request.employee_id)
        token = build_loa_credential(request, patient, approver, decided_at)
        request.credential_token = token
        return SideEffectResult(credential_token=token)


def token_number(request_type: RequestType, request_id: int) -> str:
    """Human-facing reference, e.g. ML-000042."""
    prefix = WORKFLOWS[request_type].token_prefix
    return f"{prefix}-{request_id:06d}"


def build_loa_credential(
    loa: MedicalLoa,
    patient: Employee | None,
    approver: Approver,
    decided_at: datetime,
) -> str:
    """Serialize the medical LOA credential payload."""
    payload = {
        "tokenNumber": token_number(RequestType.MEDICAL_LOA, loa.id),
        "hospitalName": loa.hospital_name,
        "patientName": patient.full_name if patient is not None else loa.employee_id,
        "visitDate": loa.visit_date.isoformat(),
        "reasonType": loa.reason_type,
        "doctor": loa.preferred_doctor,
        "approvedBy": approver.employee.full_name,
        "approvedAt": decided_at.isoformat(),
    }
    return json.dumps(payload, sort_keys=True)


@dataclass(frozen=True)
class WorkflowDefinition:
    """Static configuration for one request type."""

    request_type: RequestType
    request_model: type
    approval_model: type
    max_level: int
    label: str
    token_prefix: str
    on_final_approval: FinalApprovalHandler


WORKFLOWS: dict[RequestType, WorkflowDefinition] = {
    RequestType.MEDICAL_REIMBURSEMENT: WorkflowDefinition(
        request_type=RequestType.MEDICAL_REIMBURSEMENT,
        request_model=MedicalReimbursement,
        approval_model=MedicalReimbursementApproval,
        max_level=4,
        label="Medical Reimbursement",
        token_prefix="MR",
        on_final_approval=DeductBenefitBalance(),
    ),
    RequestType.MEDICAL_LOA: WorkflowDefinition(
        request_type=RequestType.MEDICAL_LOA,
        request_model=MedicalLoa,
        approval_model=MedicalLoaApproval,
        max_level=1,
        label="Medical LOA",
        token_prefix="ML",
        on_final_approval=IssueLoaCredential(),
    ),
    RequestType.HOUSING_LOAN: WorkflowDefinition(
        request_type=RequestType.HOUSING_LOAN,
        request_model=HousingLoan,
        approval_model=HousingLoanApproval,
        max_level=4,
        label="Housing Loan",
        token_prefix="HL",
        on_final_approval=NoSideEffect(),
    ),
    RequestType.CAR_LOAN: WorkflowDefinition(
        request_type=RequestType.CAR_LOAN,
        request_model=CarLoan,
        approval_model=CarLoanApproval,
        max_level=4,
        label="Car Loan",
        token_prefix="CL",
        on_final_approval=NoSideEffect(),
    ),
    RequestType.SALARY_LOAN: WorkflowDefinition(
        request_type=RequestType.SALARY_LOAN,
        request_model=SalaryLoan,
        approval_model=SalaryLoanApproval,
        max_level=4,
        label="Salary Loan",
        token_prefix="SL",
        on_final_approval=NoSideEffect(),
    ),
    RequestType.HOUSE_BOOKING: WorkflowDefinition(
        request_type=RequestType.HOUSE_BOOKING,
        request_model=HouseBooking,
        approval_model=HouseBookingApproval,
        max_level=2,
        label="Staff House Booking",
        token_prefix="HB",
        on_final_approval=NoSideEffect(),
    ),
}


def get_workflow(request_type: str | RequestType) -> WorkflowDefinition:
    """Look up a workflow by slug, raising InvalidInput for unknown types."""
    try:
        return WORKFLOWS[RequestType(request_type)]
    except ValueError:
        raise InvalidInput(f"Invalid request type '{request_type}'") from None
