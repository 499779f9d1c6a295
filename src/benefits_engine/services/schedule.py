"""Pure deduction-schedule rules.

These functions mutate installment objects in memory and never touch the
database, so the ledger service can run them under its row locks and tests
can run them on plain objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Iterable, Protocol, Sequence

from benefits_engine.services.state_machine import DeductionStatus, PaymentStatus

ZERO = Decimal("0")

# Entries the refresh pass and the waterfall never pick up again
RESOLVED_STATUSES = frozenset(
    {
        DeductionStatus.DEDUCTED.value,
        DeductionStatus.PARTIALLY_DEDUCTED.value,
        DeductionStatus.CANCELLED.value,
    }
)
PAID_STATUSES = frozenset(
    {DeductionStatus.DEDUCTED.value, DeductionStatus.PARTIALLY_DEDUCTED.value}
)
OPEN_STATUSES = frozenset(
    {DeductionStatus.UPCOMING.value, DeductionStatus.PENDING.value}
)

EARLY_COMPLETION_NOTE = "Cancelled due to early loan completion"


class Installment(Protocol):
    deduction_date: date
    amount: Decimal
    status: str
    actual_deduction_date: datetime | None
    is_early_payment: bool
    payment_status: str | None
    payment_amount: Decimal | None
    payment_notes: str | None


@dataclass
class AllocationResult:
    """Outcome of spreading one payment over a schedule."""

    touched: list = field(default_factory=list)
    applied: Decimal = ZERO
    unallocated: Decimal = ZERO


def start_of_day(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def refresh_entry(entry: Installment, as_of: date) -> bool:
    """Apply the date rule to one entry. Returns True if anything changed.

    Resolved entries and early-paid entries are left alone: they were settled
    by a payment, not by the calendar.
    """
    if entry.status in RESOLVED_STATUSES or entry.is_early_payment:
        return False

    changed = False
    if entry.deduction_date <= as_of:
        new_status = DeductionStatus.DEDUCTED.value
        if entry.actual_deduction_date is None:
            entry.actual_deduction_date = start_of_day(entry.deduction_date)
            changed = True
    elif (entry.deduction_date.year, entry.deduction_date.month) == (as_of.year, as_of.month):
        new_status = DeductionStatus.PENDING.value
    else:
        new_status = DeductionStatus.UPCOMING.value

    if entry.status != new_status:
        entry.status = new_status
        changed = True
    return changed


def allocate_payment(
    entries: Sequence[Installment],
    amount: Decimal,
    paid_at: datetime,
    notes: str | None = None,
) -> AllocationResult:
    """Waterfall a payment over a schedule, earliest installment first.

    1. A partially deducted installment is completed (or topped up) first.
    2. The rest goes to unresolved installments in date order; the last one
       funded may end up partially deducted.

    Whatever is left once no unresolved installment remains is reported as
    unallocated.
    """
    ordered = sorted(entries, key=lambda e: e.deduction_date)
    result = AllocationResult()
    remaining = Decimal(amount)

    partial = next(
        (e for e in ordered if e.status == DeductionStatus.PARTIALLY_DEDUCTED.value),
        None,
    )
    if partial is not None and remaining > ZERO:
        already = partial.payment_amount or ZERO
        owed = partial.amount - already
        if remaining >= owed:
            partial.status = DeductionStatus.DEDUCTED.value
            partial.payment_status = PaymentStatus.FULLY_PAID.value
            partial.payment_amount = partial.amount
            remaining -= owed
        else:
            partial.payment_status = PaymentStatus.PARTIALLY_PAID.value
            partial.payment_amount = already + remaining
            remaining = ZERO
        partial.payment_notes = notes
        result.touched.append(partial)

    for entry in ordered:
        if remaining <= ZERO:
            break
        if entry.status in RESOLVED_STATUSES:
            continue

        entry.actual_deduction_date = paid_at
        entry.is_early_payment = True
        entry.payment_notes = notes
        if remaining >= entry.amount:
            entry.status = DeductionStatus.DEDUCTED.value
            entry.payment_status = PaymentStatus.FULLY_PAID.value
            entry.payment_amount = entry.amount
            remaining -= entry.amount
        else:
            entry.status = DeductionStatus.PARTIALLY_DEDUCTED.value
            entry.payment_status = PaymentStatus.PARTIALLY_PAID.value
            entry.payment_amount = remaining
            remaining = ZERO
        result.touched.append(entry)

    result.unallocated = remaining
    result.applied = Decimal(amount) - remaining
    return result


def total_paid(entries: Iterable[Installment]) -> Decimal:
    """Sum of what was actually applied to deducted/partially deducted entries."""
    return sum(
        (
            e.payment_amount if e.payment_amount is not None else e.amount
            for e in entries
            if e.status in PAID_STATUSES
        ),
        ZERO,
    )


def total_deducted(entries: Iterable[Installment]) -> Decimal:
    """Sum of scheduled amounts on fully deducted entries."""
    return sum(
        (e.amount for e in entries if e.status == DeductionStatus.DEDUCTED.value),
        ZERO,
    )


def is_fully_paid(paid: Decimal, principal: Decimal, tolerance: Decimal) -> bool:
    return paid >= Decimal(principal) - tolerance


def cancel_open_entries(entries: Iterable[Installment]) -> list:
    """Cancel every Upcoming/Pending entry once the loan is repaid."""
    cancelled = []
    for entry in entries:
        if entry.status in OPEN_STATUSES:
            entry.status = DeductionStatus.CANCELLED.value
            entry.payment_notes = EARLY_COMPLETION_NOTE
            cancelled.append(entry)
    return cancelled
