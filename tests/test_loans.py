"""
Test suite for loan management

Tests loan origination, term validation, updates and cascading deletes.
"""

import threading

import pytest
from datetime import date
from decimal import Decimal

from loan_management.audit import AuditTrail, AuditEventType
from loan_management.customers import CustomerManager
from loan_management.loans import LoanManager, LoanStatus, LoanTerm
from loan_management.payments import PaymentManager
from loan_management.schedule import RepaymentScheduleManager
from loan_management.storage import InMemoryStorage, RecordNotFound


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_trail(storage):
    return AuditTrail(storage)


@pytest.fixture
def customer_manager(storage, audit_trail):
    return CustomerManager(storage, audit_trail)


@pytest.fixture
def loan_manager(storage, customer_manager, audit_trail):
    return LoanManager(storage, customer_manager, audit_trail)


@pytest.fixture
def customer(customer_manager):
    return customer_manager.create_customer("Juan Dela Cruz", "09171234567", "Manila",
                                            "Passport", "P1234567")


class TestLoanCreation:

    def test_create_loan(self, loan_manager, customer, audit_trail):
        loan = loan_manager.create_loan(customer.id, "10000.00", "5.5", "Monthly",
                                        "2024-01-01", "2024-12-31")

        assert loan.loan_amount == Decimal("10000.00")
        assert loan.interest_rate == Decimal("5.5")
        assert loan.loan_term == LoanTerm.MONTHLY
        assert loan.start_date == date(2024, 1, 1)
        assert loan.loan_status == LoanStatus.PENDING

        events = audit_trail.get_events_for_entity("loan", loan.id)
        assert events[0].event_type == AuditEventType.LOAN_CREATED
        assert events[0].metadata["loan_amount"] == "10000.00"

    def test_money_survives_storage(self, loan_manager, customer):
        loan = loan_manager.create_loan(customer.id, "1234.56", "0", LoanTerm.WEEKLY,
                                        date(2024, 1, 1), date(2024, 3, 1))
        assert loan_manager.get_loan(loan.id).loan_amount == Decimal("1234.56")

    def test_unknown_customer(self, loan_manager):
        with pytest.raises(RecordNotFound):
            loan_manager.create_loan("missing", "1000", "5", "Monthly",
                                     "2024-01-01", "2024-12-31")

    @pytest.mark.parametrize("amount,rate,start,end", [
        ("0", "5", "2024-01-01", "2024-12-31"),
        ("-100", "5", "2024-01-01", "2024-12-31"),
        ("abc", "5", "2024-01-01", "2024-12-31"),
        ("1000", "-1", "2024-01-01", "2024-12-31"),
        ("1000", "5", "2024-12-31", "2024-01-01"),
        ("1000", "5", "not-a-date", "2024-01-01"),
    ])
    def test_invalid_terms(self, loan_manager, customer, amount, rate, start, end):
        with pytest.raises(ValueError):
            loan_manager.create_loan(customer.id, amount, rate, "Monthly", start, end)

    @pytest.mark.parametrize("term,status", [("Daily", "Pending"), ("Monthly", "Defaulted")])
    def test_closed_enums(self, loan_manager, customer, term, status):
        with pytest.raises(ValueError):
            loan_manager.create_loan(customer.id, "1000", "5", term,
                                     "2024-01-01", "2024-12-31", status)


class TestLoanQueries:

    def test_list_by_status(self, loan_manager, customer):
        loan_manager.create_loan(customer.id, "1000", "5", "Monthly",
                                 "2024-01-01", "2024-12-31", "Active")
        loan_manager.create_loan(customer.id, "2000", "5", "Monthly",
                                 "2024-01-01", "2024-12-31", "Closed")

        active = loan_manager.list_loans(status=LoanStatus.ACTIVE)
        assert [loan.loan_amount for loan in active] == [Decimal("1000")]
        assert len(loan_manager.list_loans()) == 2

    def test_list_for_customer(self, loan_manager, customer_manager, customer):
        other = customer_manager.create_customer("Ana Reyes", "0918", "Cebu", "SSS", "S1")
        loan_manager.create_loan(customer.id, "1000", "5", "Monthly", "2024-01-01", "2024-12-31")
        loan_manager.create_loan(other.id, "2000", "5", "Weekly", "2024-01-01", "2024-03-31")

        loans = loan_manager.list_for_customer(other.id)
        assert len(loans) == 1
        assert loans[0].customer_id == other.id


class TestLoanUpdate:

    def test_update_status(self, loan_manager, customer):
        loan = loan_manager.create_loan(customer.id, "1000", "5", "Monthly",
                                        "2024-01-01", "2024-12-31")
        updated = loan_manager.update_loan(loan.id, loan_status="Approved")

        assert updated.loan_status == LoanStatus.APPROVED
        assert updated.loan_amount == Decimal("1000")

    def test_update_revalidates(self, loan_manager, customer):
        loan = loan_manager.create_loan(customer.id, "1000", "5", "Monthly",
                                        "2024-01-01", "2024-12-31")
        with pytest.raises(ValueError):
            loan_manager.update_loan(loan.id, end_date="2023-12-31")
        assert loan_manager.get_loan(loan.id).end_date == date(2024, 12, 31)

    def test_update_to_unknown_customer(self, loan_manager, customer):
        loan = loan_manager.create_loan(customer.id, "1000", "5", "Monthly",
                                        "2024-01-01", "2024-12-31")
        with pytest.raises(RecordNotFound):
            loan_manager.update_loan(loan.id, customer_id="missing")

    def test_update_missing(self, loan_manager):
        with pytest.raises(RecordNotFound):
            loan_manager.update_loan("missing", loan_status="Active")


class TestLoanDelete:

    def test_delete_cascades_to_schedule(self, storage, loan_manager, customer):
        loan = loan_manager.create_loan(customer.id, "1000", "5", "Monthly",
                                        "2024-01-01", "2024-12-31")
        schedule = RepaymentScheduleManager(storage, loan_manager)
        schedule.create_entry(loan.id, "2024-02-01", "500")
        schedule.create_entry(loan.id, "2024-03-01", "500")

        assert loan_manager.delete_loan(loan.id) is True
        assert loan_manager.get_loan(loan.id) is None
        assert schedule.list_for_loan(loan.id) == []

    def test_delete_missing(self, loan_manager):
        assert loan_manager.delete_loan("missing") is False

    def test_delete_with_payments_blocked(self, storage, loan_manager, customer):
        loan = loan_manager.create_loan(customer.id, "1000", "5", "Monthly",
                                        "2024-01-01", "2024-12-31", "Active")
        schedule = RepaymentScheduleManager(storage, loan_manager)
        schedule.create_entry(loan.id, "2024-02-01", "1000")
        PaymentManager(storage, loan_manager, schedule).record_payment(
            loan.id, "100", "Cash", recorded_by="USER1")

        with pytest.raises(ValueError):
            loan_manager.delete_loan(loan.id)
        assert len(schedule.list_for_loan(loan.id)) == 1

    def test_payment_recorded_during_delete_is_rejected(self, storage, loan_manager,
                                                        customer, monkeypatch):
        """A payment racing a delete waits for the loan lock, then finds no loan"""
        loan = loan_manager.create_loan(customer.id, "1000", "5", "Monthly",
                                        "2024-01-01", "2024-12-31", "Active")
        schedule = RepaymentScheduleManager(storage, loan_manager)
        schedule.create_entry(loan.id, "2024-02-01", "1000")
        payment_manager = PaymentManager(storage, loan_manager, schedule)

        errors = []

        def pay():
            try:
                payment_manager.record_payment(loan.id, "40", "Cash", recorded_by="USER1")
            except RecordNotFound as e:
                errors.append(e)

        payer = threading.Thread(target=pay)
        original_find = storage.find

        def find_then_pay(table, filters):
            result = original_find(table, filters)
            if table == "payments" and payer.ident is None:
                # start a payment right after the check and give it time to commit
                payer.start()
                payer.join(timeout=0.2)
            return result

        monkeypatch.setattr(storage, "find", find_then_pay)
        assert loan_manager.delete_loan(loan.id) is True
        payer.join()
        monkeypatch.undo()

        assert loan_manager.get_loan(loan.id) is None
        assert storage.find("payments", {"loan_id": loan.id}) == []
        assert len(errors) == 1

    def test_schedule_shares_loan_locks(self, storage, loan_manager):
        schedule = RepaymentScheduleManager(storage, loan_manager)
        assert schedule.locks is loan_manager.locks
