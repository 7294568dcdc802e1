"""
Repayment Schedule Module

Installment rows of each loan: due date, amount due, running outstanding
balance and status. Row mutations for a loan happen under that loan's lock.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union
from enum import Enum
import uuid

from .storage import (
    StorageInterface, StorageRecord, RecordNotFound, KeyedLock,
    parse_date, parse_decimal
)
from .audit import AuditTrail, AuditEventType
from .loans import LoanManager
from .logging_config import get_logger, log_action

if TYPE_CHECKING:
    from .overdue import Classification


logger = get_logger(__name__)


class ScheduleStatus(Enum):
    """Repayment schedule row status"""
    UNPAID = "Unpaid"
    PAID = "Paid"
    LATE = "Late"


# Rows that still take payments
OPEN_STATUSES = frozenset({ScheduleStatus.UNPAID, ScheduleStatus.LATE})


@dataclass
class ScheduleEntry(StorageRecord):
    """One installment of a loan"""
    loan_id: str
    due_date: date
    amount_due: Decimal
    outstanding_balance: Decimal
    status: ScheduleStatus = ScheduleStatus.UNPAID

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduleEntry':
        data = cls.parse_timestamps(data)
        data['due_date'] = parse_date(data['due_date'], 'due_date')
        data['amount_due'] = Decimal(data['amount_due'])
        data['outstanding_balance'] = Decimal(data['outstanding_balance'])
        data['status'] = ScheduleStatus(data['status'])
        return cls(**data)


@dataclass(frozen=True)
class ScheduleUpdate:
    """New balance and status for one schedule row"""
    schedule_id: str
    new_outstanding_balance: Decimal
    new_status: ScheduleStatus


def _check_balances(amount_due: Decimal, outstanding: Decimal, status: ScheduleStatus) -> None:
    if amount_due <= Decimal('0'):
        raise ValueError("Amount due must be positive")
    if outstanding < Decimal('0'):
        raise ValueError("Outstanding balance cannot be negative")
    if outstanding > amount_due:
        raise ValueError("Outstanding balance cannot exceed amount due")
    if status == ScheduleStatus.PAID and outstanding != Decimal('0'):
        raise ValueError("A paid row must have a zero outstanding balance")


class RepaymentScheduleManager:
    """Manages repayment schedule rows"""

    TABLE = 'repayment_schedule'

    def __init__(self, storage: StorageInterface, loans: LoanManager,
                 audit_trail: Optional[AuditTrail] = None,
                 locks: Optional[KeyedLock] = None):
        self.storage = storage
        self.loans = loans
        self.audit_trail = audit_trail
        self.locks = locks or loans.locks

    def create_entry(
        self,
        loan_id: str,
        due_date: Union[str, date],
        amount_due: Union[Decimal, str, int, float],
        outstanding_balance: Union[Decimal, str, int, float, None] = None,
        status: Union[str, ScheduleStatus] = ScheduleStatus.UNPAID,
        created_by: Optional[str] = None
    ) -> ScheduleEntry:
        """
        Add an installment to a loan's schedule

        The outstanding balance defaults to the amount due, or to zero for a
        row created as Paid.

        Raises:
            RecordNotFound: If the loan does not exist
            ValueError: If the amounts or status are inconsistent
        """
        status = ScheduleStatus(status)
        amount = parse_decimal(amount_due, 'amount_due')
        if outstanding_balance is not None:
            outstanding = parse_decimal(outstanding_balance, 'outstanding_balance')
        elif status == ScheduleStatus.PAID:
            outstanding = Decimal('0')
        else:
            outstanding = amount
        _check_balances(amount, outstanding, status)

        now = datetime.now(timezone.utc)
        entry = ScheduleEntry(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            loan_id=loan_id,
            due_date=parse_date(due_date, 'due_date'),
            amount_due=amount,
            outstanding_balance=outstanding,
            status=status
        )

        with self.locks.hold(loan_id):
            if not self.loans.get_loan(loan_id):
                raise RecordNotFound(f"Loan {loan_id} not found")
            self.storage.save(self.TABLE, entry.id, entry.to_dict())

        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.SCHEDULE_ENTRY_CREATED,
                entity_type="schedule_entry",
                entity_id=entry.id,
                metadata={"loan_id": loan_id, "due_date": entry.due_date,
                          "amount_due": amount, "status": status},
                user_id=created_by
            )
        log_action(logger, "info", "Schedule entry created", user_id=created_by,
                   action="create", resource="Repayment", entity_id=entry.id,
                   extra={"loan_id": loan_id})
        return entry

    def get_entry(self, schedule_id: str) -> Optional[ScheduleEntry]:
        """Get schedule row by ID"""
        data = self.storage.load(self.TABLE, schedule_id)
        if not data:
            return None
        return ScheduleEntry.from_dict(data)

    def update_entry(
        self,
        schedule_id: str,
        due_date: Union[str, date, None] = None,
        amount_due: Union[Decimal, str, int, float, None] = None,
        outstanding_balance: Union[Decimal, str, int, float, None] = None,
        status: Union[str, ScheduleStatus, None] = None,
        updated_by: Optional[str] = None
    ) -> ScheduleEntry:
        """Manually correct a schedule row; omitted fields are left unchanged"""
        entry = self.get_entry(schedule_id)
        if not entry:
            raise RecordNotFound(f"Schedule entry {schedule_id} not found")

        with self.locks.hold(entry.loan_id):
            entry = self.get_entry(schedule_id)
            if not entry:
                raise RecordNotFound(f"Schedule entry {schedule_id} not found")
            if due_date is not None:
                entry.due_date = parse_date(due_date, 'due_date')
            if amount_due is not None:
                entry.amount_due = parse_decimal(amount_due, 'amount_due')
            if status is not None:
                entry.status = ScheduleStatus(status)
            if outstanding_balance is not None:
                entry.outstanding_balance = parse_decimal(outstanding_balance, 'outstanding_balance')
            elif status is not None and entry.status == ScheduleStatus.PAID:
                entry.outstanding_balance = Decimal('0')
            _check_balances(entry.amount_due, entry.outstanding_balance, entry.status)

            entry.updated_at = datetime.now(timezone.utc)
            self.storage.save(self.TABLE, entry.id, entry.to_dict())

        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.SCHEDULE_ENTRY_UPDATED,
                entity_type="schedule_entry",
                entity_id=entry.id,
                metadata={"loan_id": entry.loan_id,
                          "outstanding_balance": entry.outstanding_balance,
                          "status": entry.status},
                user_id=updated_by
            )
        log_action(logger, "info", "Schedule entry updated", user_id=updated_by,
                   action="edit", resource="Repayment", entity_id=entry.id)
        return entry

    def list_all(self) -> List[ScheduleEntry]:
        """All schedule rows, ascending due date"""
        entries = [ScheduleEntry.from_dict(data) for data in self.storage.load_all(self.TABLE)]
        return sorted(entries, key=lambda e: (e.due_date, e.id))

    def list_for_loan(self, loan_id: str) -> List[ScheduleEntry]:
        """A loan's schedule rows, ascending due date"""
        entries = [ScheduleEntry.from_dict(data)
                   for data in self.storage.find(self.TABLE, {'loan_id': loan_id})]
        return sorted(entries, key=lambda e: (e.due_date, e.id))

    def outstanding_for_loan(self, loan_id: str) -> List[ScheduleEntry]:
        """A loan's Unpaid and Late rows, ascending due date"""
        return [entry for entry in self.list_for_loan(loan_id) if entry.is_open]

    def apply_updates(self, loan_id: str, updates: Iterable[ScheduleUpdate],
                      payment_id: Optional[str] = None,
                      user_id: Optional[str] = None) -> List[ScheduleEntry]:
        """
        Persist allocation results for one loan.

        Callers hold the loan's lock and a storage transaction. Every update
        must target an open row of that loan and must not raise its balance.
        """
        updated = []
        for update in updates:
            entry = self.get_entry(update.schedule_id)
            if not entry or entry.loan_id != loan_id:
                raise RecordNotFound(f"Schedule entry {update.schedule_id} not found for loan {loan_id}")
            if not entry.is_open:
                raise ValueError(f"Schedule entry {entry.id} is already paid")
            new_balance = update.new_outstanding_balance
            if new_balance < Decimal('0') or new_balance > entry.outstanding_balance:
                raise ValueError(f"Invalid outstanding balance {new_balance} for entry {entry.id}")
            _check_balances(entry.amount_due, new_balance, update.new_status)

            previous = entry.outstanding_balance
            entry.outstanding_balance = new_balance
            entry.status = update.new_status
            entry.updated_at = datetime.now(timezone.utc)
            self.storage.save(self.TABLE, entry.id, entry.to_dict())
            updated.append(entry)

            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.SCHEDULE_ALLOCATED,
                    entity_type="schedule_entry",
                    entity_id=entry.id,
                    metadata={"loan_id": loan_id, "payment_id": payment_id,
                              "previous_balance": previous,
                              "outstanding_balance": new_balance,
                              "status": entry.status},
                    user_id=user_id
                )
        return updated

    def apply_late_transitions(self, classifications: Iterable['Classification'],
                               user_id: Optional[str] = None) -> List[ScheduleEntry]:
        """
        Persist Unpaid -> Late for every classification flagged mark_late.

        Rows that are no longer Unpaid when re-read under the loan lock are
        left alone, so Late never reverts and Paid is never overwritten.
        """
        marked = []
        for classification in classifications:
            if not classification.mark_late:
                continue
            entry = self.get_entry(classification.schedule_id)
            if not entry:
                continue

            with self.locks.hold(entry.loan_id):
                entry = self.get_entry(classification.schedule_id)
                if not entry or entry.status != ScheduleStatus.UNPAID:
                    continue
                entry.status = ScheduleStatus.LATE
                entry.updated_at = datetime.now(timezone.utc)
                self.storage.save(self.TABLE, entry.id, entry.to_dict())

            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.SCHEDULE_MARKED_LATE,
                    entity_type="schedule_entry",
                    entity_id=entry.id,
                    metadata={"loan_id": entry.loan_id,
                              "due_date": entry.due_date,
                              "days_overdue": classification.days_overdue},
                    user_id=user_id
                )
            marked.append(entry)

        if marked:
            log_action(logger, "info", "Schedule entries marked late", user_id=user_id,
                       action="edit", resource="Repayment",
                       extra={"count": len(marked)})
        return marked
