"""
Test suite for repayment schedules
"""

import pytest
from decimal import Decimal

from loan_management.audit import AuditTrail, AuditEventType
from loan_management.customers import CustomerManager
from loan_management.loans import LoanManager
from loan_management.schedule import (
    RepaymentScheduleManager, ScheduleStatus, ScheduleUpdate
)
from loan_management.storage import InMemoryStorage, RecordNotFound


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_trail(storage):
    return AuditTrail(storage)


@pytest.fixture
def loan_manager(storage):
    return LoanManager(storage, CustomerManager(storage))


@pytest.fixture
def schedule_manager(storage, loan_manager, audit_trail):
    return RepaymentScheduleManager(storage, loan_manager, audit_trail)


@pytest.fixture
def loan(loan_manager):
    customer = loan_manager.customers.create_customer(
        "Juan Dela Cruz", "09171234567", "Manila", "Passport", "P1")
    return loan_manager.create_loan(customer.id, "3000", "5", "Monthly",
                                    "2024-01-01", "2024-03-31", "Active")


class TestCreateEntry:

    def test_defaults(self, schedule_manager, loan):
        entry = schedule_manager.create_entry(loan.id, "2024-02-01", "1000")

        assert entry.amount_due == Decimal("1000")
        assert entry.outstanding_balance == Decimal("1000")
        assert entry.status == ScheduleStatus.UNPAID
        assert entry.is_open

    def test_paid_row_has_zero_balance(self, schedule_manager, loan):
        entry = schedule_manager.create_entry(loan.id, "2024-02-01", "1000", status="Paid")
        assert entry.outstanding_balance == Decimal("0")
        assert not entry.is_open

    def test_unknown_loan(self, schedule_manager):
        with pytest.raises(RecordNotFound):
            schedule_manager.create_entry("missing", "2024-02-01", "1000")

    @pytest.mark.parametrize("amount,outstanding,status", [
        ("0", None, "Unpaid"),
        ("-5", None, "Unpaid"),
        ("100", "150", "Unpaid"),
        ("100", "-1", "Late"),
        ("100", "50", "Paid"),
        ("100", None, "Overdue"),
    ])
    def test_inconsistent_rows_rejected(self, schedule_manager, loan,
                                        amount, outstanding, status):
        with pytest.raises(ValueError):
            schedule_manager.create_entry(loan.id, "2024-02-01", amount, outstanding, status)

    def test_audited(self, schedule_manager, loan, audit_trail):
        entry = schedule_manager.create_entry(loan.id, "2024-02-01", "1000")
        events = audit_trail.get_events_for_entity("schedule_entry", entry.id)
        assert events[0].event_type == AuditEventType.SCHEDULE_ENTRY_CREATED


class TestQueries:

    def test_list_for_loan_ascending(self, schedule_manager, loan):
        for due in ("2024-03-01", "2024-01-01", "2024-02-01"):
            schedule_manager.create_entry(loan.id, due, "1000")

        dues = [e.due_date.isoformat() for e in schedule_manager.list_for_loan(loan.id)]
        assert dues == ["2024-01-01", "2024-02-01", "2024-03-01"]

    def test_outstanding_excludes_paid(self, schedule_manager, loan):
        schedule_manager.create_entry(loan.id, "2024-01-01", "1000", status="Paid")
        schedule_manager.create_entry(loan.id, "2024-02-01", "1000", status="Late")
        schedule_manager.create_entry(loan.id, "2024-03-01", "1000")

        statuses = [e.status for e in schedule_manager.outstanding_for_loan(loan.id)]
        assert statuses == [ScheduleStatus.LATE, ScheduleStatus.UNPAID]


class TestUpdateEntry:

    def test_manual_correction(self, schedule_manager, loan):
        entry = schedule_manager.create_entry(loan.id, "2024-02-01", "1000")
        updated = schedule_manager.update_entry(entry.id, outstanding_balance="400")

        assert updated.outstanding_balance == Decimal("400")
        assert updated.status == ScheduleStatus.UNPAID

    def test_marking_paid_zeroes_balance(self, schedule_manager, loan):
        entry = schedule_manager.create_entry(loan.id, "2024-02-01", "1000")
        updated = schedule_manager.update_entry(entry.id, status=ScheduleStatus.PAID)
        assert updated.outstanding_balance == Decimal("0")

    def test_inconsistent_update_rejected(self, schedule_manager, loan):
        entry = schedule_manager.create_entry(loan.id, "2024-02-01", "1000")
        with pytest.raises(ValueError):
            schedule_manager.update_entry(entry.id, amount_due="500")
        assert schedule_manager.get_entry(entry.id).amount_due == Decimal("1000")

    def test_update_missing(self, schedule_manager):
        with pytest.raises(RecordNotFound):
            schedule_manager.update_entry("missing", status="Paid")


class TestApplyUpdates:

    def test_applies_and_audits(self, schedule_manager, loan, audit_trail):
        entry = schedule_manager.create_entry(loan.id, "2024-02-01", "1000")
        schedule_manager.apply_updates(
            loan.id, [ScheduleUpdate(entry.id, Decimal("0"), ScheduleStatus.PAID)],
            payment_id="PAY1")

        stored = schedule_manager.get_entry(entry.id)
        assert stored.status == ScheduleStatus.PAID
        event = audit_trail.get_all_events(event_type=AuditEventType.SCHEDULE_ALLOCATED)[0]
        assert event.metadata["payment_id"] == "PAY1"
        assert event.metadata["previous_balance"] == "1000"

    def test_paid_row_rejected(self, schedule_manager, loan):
        entry = schedule_manager.create_entry(loan.id, "2024-02-01", "1000", status="Paid")
        with pytest.raises(ValueError):
            schedule_manager.apply_updates(
                loan.id, [ScheduleUpdate(entry.id, Decimal("0"), ScheduleStatus.PAID)])

    def test_balance_cannot_increase(self, schedule_manager, loan):
        entry = schedule_manager.create_entry(loan.id, "2024-02-01", "1000", "300")
        with pytest.raises(ValueError):
            schedule_manager.apply_updates(
                loan.id, [ScheduleUpdate(entry.id, Decimal("500"), ScheduleStatus.UNPAID)])

    def test_other_loan_row_rejected(self, schedule_manager, loan_manager, loan):
        other = loan_manager.create_loan(loan.customer_id, "500", "0", "Weekly",
                                         "2024-01-01", "2024-02-01")
        entry = schedule_manager.create_entry(other.id, "2024-01-08", "500")
        with pytest.raises(RecordNotFound):
            schedule_manager.apply_updates(
                loan.id, [ScheduleUpdate(entry.id, Decimal("0"), ScheduleStatus.PAID)])
