"""CLI tests against a throwaway SQLite file."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from benefits_engine.cli import BenefitsCli, parse_date
from benefits_engine.database import create_schema, get_engine, make_session_factory
from benefits_engine.models import CarLoan, CarLoanDeduction, Employee

from .conftest import SUBMITTER_ID, add_months


async def seed_car_loan(url: str) -> int:
    engine = get_engine(url)
    await create_schema(engine)
    factory = make_session_factory(engine)
    async with factory() as session:
        session.add(
            Employee(employee_id=SUBMITTER_ID, first_name="Maria", last_name="Santos")
        )
        loan = CarLoan(
            employee_id=SUBMITTER_ID,
            loan_amount=Decimal("3000.00"),
            repayment_term=3,
            status="Approved",
            current_approval_level=4,
        )
        session.add(loan)
        await session.flush()
        for i in range(3):
            session.add(
                CarLoanDeduction(
                    loan_id=loan.id,
                    deduction_date=add_months(date(2025, 1, 15), i),
                    amount=Decimal("1000.00"),
                )
            )
        await session.commit()
        loan_id = loan.id
    await engine.dispose()
    return loan_id


async def loan_status(url: str, loan_id: int) -> str:
    engine = get_engine(url)
    factory = make_session_factory(engine)
    async with factory() as session:
        status = await session.scalar(select(CarLoan.status).where(CarLoan.id == loan_id))
    await engine.dispose()
    return status


@pytest.fixture
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


def test_parse_date():
    assert parse_date("2025-01-31") == date(2025, 1, 31)


def test_invalid_date_exits():
    with pytest.raises(SystemExit):
        BenefitsCli().run(["refresh-schedules", "--as-of", "31/01/2025"])


def test_no_command_prints_help(capsys):
    assert BenefitsCli().run([]) == 1
    assert "refresh-schedules" in capsys.readouterr().out


def test_refresh_schedules_completes_loans(database_url, capsys):
    loan_id = asyncio.run(seed_car_loan(database_url))

    code = BenefitsCli().run(
        ["--database-url", database_url, "refresh-schedules", "--as-of", "2025-03-31"]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert "refreshed as of 2025-03-31" in out
    assert "Entries updated: 3" in out
    assert "Loans completed: 1" in out
    assert asyncio.run(loan_status(database_url, loan_id)) == "Completed"


def test_refresh_only_then_complete_loans(database_url, capsys):
    loan_id = asyncio.run(seed_car_loan(database_url))

    code = BenefitsCli().run(
        [
            "--database-url",
            database_url,
            "refresh-schedules",
            "--as-of",
            "2025-03-31",
            "--skip-completion",
        ]
    )
    assert code == 0
    out = capsys.readouterr().out
    assert "Entries updated: 3" in out
    assert "Loans completed" not in out
    assert asyncio.run(loan_status(database_url, loan_id)) == "Approved"

    assert BenefitsCli().run(["--database-url", database_url, "complete-loans"]) == 0
    assert "Loans completed: 1" in capsys.readouterr().out
    assert asyncio.run(loan_status(database_url, loan_id)) == "Completed"
