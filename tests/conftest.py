"""Pytest fixtures for benefits engine tests."""

from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from benefits_engine.database import make_session_factory
from benefits_engine.models import (
    Approver,
    Base,
    CarLoan,
    CarLoanDeduction,
    Employee,
    HouseBooking,
    HousingLoan,
    HousingLoanDeduction,
    MedicalLoa,
    MedicalReimbursement,
    SalaryLoan,
    SalaryLoanDeduction,
)

# In-memory SQLite shared by every session of a test through one connection.
# Row locks are no-ops here; uniqueness and check constraints still apply.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FIXED_NOW = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

SUBMITTER_ID = "EMP-1001"
OTHER_EMPLOYEE_ID = "EMP-1002"
HR_ADMIN_ID = "EMP-2001"

# numeric level -> (employee id, title)
APPROVERS = {
    1: ("APR-0001", "Department Head"),
    2: ("APR-0002", "Division Manager"),
    3: ("APR-0003", "Finance Officer"),
    4: ("APR-0004", "HR Manager"),
}

REQUEST_DEFAULTS: dict[type, dict] = {
    MedicalReimbursement: {
        "total_amount": Decimal("3000.00"),
        "description": "Annual physical exam",
    },
    MedicalLoa: {
        "hospital_name": "St. Luke's Medical Center",
        "visit_date": date(2025, 3, 10),
        "reason_type": "Consultation",
        "preferred_doctor": "Dr. Reyes",
    },
    HousingLoan: {
        "loan_amount": Decimal("120000.00"),
        "repayment_term": 12,
        "property_type": "Condominium",
    },
    CarLoan: {
        "loan_amount": Decimal("60000.00"),
        "repayment_term": 12,
        "car_make": "Toyota",
        "car_model": "Vios",
        "car_year": 2024,
    },
    SalaryLoan: {
        "loan_amount": Decimal("12000.00"),
        "repayment_term": 12,
        "purpose": "Tuition",
    },
    HouseBooking: {
        "house_name": "Baguio Staff House",
        "check_in": date(2025, 4, 10),
        "check_out": date(2025, 4, 13),
        "guests": 3,
    },
}

DEDUCTION_MODELS = {
    SalaryLoan: SalaryLoanDeduction,
    CarLoan: CarLoanDeduction,
    HousingLoan: HousingLoanDeduction,
}


def add_months(value: date, months: int) -> date:
    month_index = value.month - 1 + months
    return value.replace(year=value.year + month_index // 12, month=month_index % 12 + 1)


def fixed_clock() -> datetime:
    return FIXED_NOW


@pytest_asyncio.fixture
async def engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def directory(session: AsyncSession) -> AsyncSession:
    """Seed employees, the four-level approver chain and an HR admin."""
    session.add_all(
        [
            Employee(
                employee_id=SUBMITTER_ID,
                first_name="Maria",
                last_name="Santos",
                position="Software Engineer",
                benefits_package="Gold",
                benefits_amount_remaining=Decimal("10000.00"),
            ),
            Employee(
                employee_id=OTHER_EMPLOYEE_ID,
                first_name="Jose",
                last_name="Garcia",
                position="Accountant",
            ),
            Employee(
                employee_id=HR_ADMIN_ID,
                first_name="Ana",
                last_name="Lopez",
                position="HR Admin Officer",
            ),
        ]
    )
    for level, (employee_id, title) in APPROVERS.items():
        session.add(
            Employee(
                employee_id=employee_id,
                first_name="Approver",
                last_name=str(level),
                position=title,
            )
        )
        session.add(
            Approver(
                employee_id=employee_id,
                approval_level=title,
                numeric_level=level,
                can_approve=True,
            )
        )
    await session.commit()
    return session


@pytest.fixture
def create_request(directory: AsyncSession):
    """Factory for request rows with sensible per-type defaults."""

    async def _create(model: type, **fields):
        values = {"employee_id": SUBMITTER_ID, **REQUEST_DEFAULTS[model], **fields}
        request = model(**values)
        directory.add(request)
        await directory.commit()
        return request

    return _create


@pytest.fixture
def create_loan(directory: AsyncSession):
    """Factory for an approved loan with an equal monthly deduction schedule.

    Installments fall on the 15th of each month starting at `first_due`.
    """

    async def _create(
        model: type = SalaryLoan,
        principal: Decimal = Decimal("12000.00"),
        months: int = 12,
        first_due: date = date(2025, 1, 15),
        status: str = "Approved",
        employee_id: str = SUBMITTER_ID,
        installment: Decimal | None = None,
    ):
        loan = model(
            employee_id=employee_id,
            loan_amount=principal,
            repayment_term=months,
            status=status,
            current_approval_level=4,
        )
        directory.add(loan)
        await directory.flush()

        if installment is None:
            installment = (principal / months).quantize(Decimal("0.01"))
        deduction_model = DEDUCTION_MODELS[model]
        for i in range(months):
            directory.add(
                deduction_model(
                    loan_id=loan.id,
                    deduction_date=add_months(first_due, i),
                    amount=installment,
                    status="Upcoming",
                )
            )
        await directory.commit()
        return loan

    return _create
