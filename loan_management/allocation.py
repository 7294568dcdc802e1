"""
Payment Allocation Module

Distributes a payment across a loan's open repayment schedule rows, oldest
due date first. Pure: callers persist the returned updates.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, List

from .schedule import ScheduleEntry, ScheduleStatus, ScheduleUpdate, OPEN_STATUSES
from .storage import parse_decimal


ZERO = Decimal('0')


class InvalidPaymentAmount(ValueError):
    """Raised for a payment amount that is not a positive number"""


@dataclass(frozen=True)
class AllocationResult:
    """Outcome of allocating one payment"""
    updates: List[ScheduleUpdate] = field(default_factory=list)
    applied: Decimal = ZERO
    unapplied: Decimal = ZERO  # overpayment left after every open row is settled

    @property
    def rows_updated(self) -> int:
        return len(self.updates)


def validate_payment_amount(payment_amount: Any) -> Decimal:
    """Return the amount as a Decimal, rejecting anything not strictly positive"""
    try:
        amount = parse_decimal(payment_amount, 'payment amount')
    except ValueError as e:
        raise InvalidPaymentAmount(str(e)) from e
    if amount <= ZERO:
        raise InvalidPaymentAmount("Payment amount must be greater than zero")
    return amount


def allocate(payment_amount: Any, entries: Iterable[ScheduleEntry]) -> AllocationResult:
    """
    Allocate a payment across schedule rows.

    Only Unpaid and Late rows take part; they are walked in ascending due date
    order whatever order they are given in. A row whose outstanding balance is
    covered by what remains of the payment is settled (balance 0, Paid); the
    first row that is not fully covered takes the rest as a partial payment,
    keeps its status, and allocation stops there.

    Args:
        payment_amount: Amount paid, must be positive
        entries: Schedule rows of a single loan

    Returns:
        AllocationResult with one update per touched row

    Raises:
        InvalidPaymentAmount: If the amount is zero, negative or not a number
    """
    amount = validate_payment_amount(payment_amount)

    open_entries = sorted(
        (entry for entry in entries if entry.status in OPEN_STATUSES),
        key=lambda entry: (entry.due_date, entry.id)
    )

    remaining = amount
    updates: List[ScheduleUpdate] = []
    for entry in open_entries:
        if remaining <= ZERO:
            break
        balance = entry.outstanding_balance
        if remaining >= balance:
            updates.append(ScheduleUpdate(entry.id, ZERO, ScheduleStatus.PAID))
            remaining -= balance
        else:
            updates.append(ScheduleUpdate(entry.id, balance - remaining, entry.status))
            remaining = ZERO

    return AllocationResult(updates=updates, applied=amount - remaining, unapplied=remaining)
