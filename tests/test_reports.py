"""
Test suite for the reporting engine
"""

import pytest
from datetime import date
from decimal import Decimal

from loan_management.audit import AuditTrail, AuditEventType
from loan_management.customers import CustomerManager
from loan_management.loans import LoanManager
from loan_management.payments import PaymentManager
from loan_management.reports import ReportingEngine, ReportPeriod, UnknownReport, period_range
from loan_management.schedule import RepaymentScheduleManager, ScheduleStatus
from loan_management.storage import InMemoryStorage


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_trail(storage):
    return AuditTrail(storage)


@pytest.fixture
def system(storage, audit_trail):
    customers = CustomerManager(storage, audit_trail)
    loans = LoanManager(storage, customers, audit_trail)
    schedule = RepaymentScheduleManager(storage, loans, audit_trail)
    payments = PaymentManager(storage, loans, schedule, audit_trail)
    engine = ReportingEngine(customers, loans, schedule, payments)
    return customers, loans, schedule, payments, engine


@pytest.fixture
def loan_book(system):
    """Two customers: Juan with an active loan, Ana with an active and a closed loan"""
    customers, loans, schedule, payments, _ = system
    juan = customers.create_customer("Juan Dela Cruz", "0917", "Manila", "Passport", "P1")
    ana = customers.create_customer("Ana Reyes", "0918", "Cebu", "SSS", "S1")

    juan_loan = loans.create_loan(juan.id, "1000", "5", "Monthly",
                                  "2024-01-01", "2024-02-29", "Active")
    schedule.create_entry(juan_loan.id, "2024-01-31", "500")
    schedule.create_entry(juan_loan.id, "2024-02-29", "500")

    ana_loan = loans.create_loan(ana.id, "3000", "5", "Weekly",
                                 "2024-01-10", "2024-01-31", "Active")
    schedule.create_entry(ana_loan.id, "2024-01-17", "1500")
    schedule.create_entry(ana_loan.id, "2024-01-24", "1500")

    closed = loans.create_loan(ana.id, "700", "5", "Monthly",
                               "2023-06-01", "2023-07-01", "Closed")
    schedule.create_entry(closed.id, "2023-07-01", "700")

    return {"juan": juan, "ana": ana, "juan_loan": juan_loan,
            "ana_loan": ana_loan, "closed_loan": closed}


class TestPeriodRange:

    def test_daily(self):
        assert period_range("daily", date(2024, 3, 10)) == (date(2024, 3, 10), date(2024, 3, 10))

    def test_weekly_and_monthly_have_no_upper_bound(self):
        assert period_range(ReportPeriod.WEEKLY, date(2024, 3, 10)) == (date(2024, 3, 3), None)
        assert period_range("monthly", date(2024, 3, 10)) == (date(2024, 2, 9), None)

    def test_explicit_range_wins(self):
        assert period_range("weekly", date(2024, 3, 10), "2024-01-01", "2024-01-31") == \
            (date(2024, 1, 1), date(2024, 1, 31))

    def test_invalid(self):
        with pytest.raises(ValueError):
            period_range("yearly")
        with pytest.raises(ValueError):
            period_range("daily", None, "2024-02-01", "2024-01-01")


class TestActiveAndOutstanding:

    def test_active_loans(self, system, loan_book):
        report = system[-1].active_loans()

        assert report.summary["total"] == 2
        assert report.summary["total_amount"] == Decimal("4000")
        names = {row["full_name"] for row in report.data}
        assert names == {"Juan Dela Cruz", "Ana Reyes"}

    def test_outstanding_balance(self, system, loan_book):
        _, _, _, payments, engine = system
        payments.record_payment(loan_book["juan_loan"].id, "600", "Cash", "U1")

        report = engine.outstanding_balance()

        assert [row["full_name"] for row in report.data] == ["Ana Reyes", "Juan Dela Cruz"]
        assert report.data[0]["total_outstanding"] == Decimal("3000")
        assert report.data[1]["total_outstanding"] == Decimal("400")
        assert report.summary["total_outstanding"] == Decimal("3400")

    def test_fully_paid_customer_omitted(self, system, loan_book):
        _, _, _, payments, engine = system
        payments.record_payment(loan_book["juan_loan"].id, "1000", "Cash", "U1")

        names = [row["full_name"] for row in engine.outstanding_balance().data]
        assert names == ["Ana Reyes"]


class TestPeriodReports:

    def test_collections_grouped_by_date_and_method(self, system, loan_book):
        _, _, _, payments, engine = system
        loan_id = loan_book["ana_loan"].id
        payments.record_payment(loan_id, "100", "Cash", "U1", payment_date="2024-03-10")
        payments.record_payment(loan_id, "50", "Cash", "U1", payment_date="2024-03-10")
        payments.record_payment(loan_id, "70", "E-Wallet", "U1", payment_date="2024-03-10")
        payments.record_payment(loan_id, "30", "Bank", "U1", payment_date="2024-03-01")

        daily = engine.collections("daily", as_of=date(2024, 3, 10))
        assert daily.summary["total_payments"] == 3
        assert daily.summary["total_amount"] == Decimal("220")
        cash = next(r for r in daily.data if r["payment_method"] == "Cash")
        assert cash["payment_count"] == 2
        assert cash["total_collected"] == Decimal("150")
        assert cash["unique_customers"] == 1

        weekly = engine.collections("weekly", as_of=date(2024, 3, 10))
        assert weekly.summary["total_payments"] == 3

        monthly = engine.collections("monthly", as_of=date(2024, 3, 10))
        assert monthly.summary["total_payments"] == 4

    def test_collections_custom_range(self, system, loan_book):
        _, _, _, payments, engine = system
        payments.record_payment(loan_book["ana_loan"].id, "30", "Bank", "U1",
                                payment_date="2024-03-01")

        report = engine.collections(start_date="2024-03-01", end_date="2024-03-01")
        assert report.metadata["period"] == "custom"
        assert report.summary["total_amount"] == Decimal("30")

    def test_loans_by_period(self, system, loan_book):
        engine = system[-1]
        report = engine.loans_by_period("monthly", as_of=date(2024, 1, 20))

        assert report.summary["total_loans"] == 2
        assert [row["loan_date"] for row in report.data] == [date(2024, 1, 10), date(2024, 1, 1)]


class TestOverdueReport:

    def test_classifies_and_marks_late(self, system, loan_book, audit_trail):
        _, _, schedule, _, engine = system

        report = engine.overdue(as_of=date(2024, 2, 10))

        # Juan's January row and both of Ana's rows are past due; the closed
        # loan's July row is past due as well since loan status is not a filter
        assert report.summary["overdue_entries"] == 4
        assert report.summary["marked_late"] == 4
        for row in report.data:
            assert row["payment_status"] == "Overdue"
            assert row["status"] == "Late"
            assert row["days_overdue"] > 0

        juan_row = next(r for r in report.data if r["full_name"] == "Juan Dela Cruz")
        assert juan_row["days_overdue"] == 10

        late = [e for e in schedule.list_all() if e.status == ScheduleStatus.LATE]
        assert len(late) == 4
        assert len(audit_trail.get_all_events(event_type=AuditEventType.SCHEDULE_MARKED_LATE)) == 4

    def test_second_run_keeps_late_rows(self, system, loan_book):
        engine = system[-1]
        engine.overdue(as_of=date(2024, 2, 10))
        report = engine.overdue(as_of=date(2024, 2, 20))

        assert report.summary["overdue_entries"] == 4
        assert report.summary["marked_late"] == 0
        assert {row["payment_status"] for row in report.data} == {"Late"}

    def test_paid_rows_excluded(self, system, loan_book):
        _, _, _, payments, engine = system
        payments.record_payment(loan_book["ana_loan"].id, "3000", "Cash", "U1")

        report = engine.overdue(as_of=date(2024, 2, 10))
        assert {row["loan_id"] for row in report.data} == {
            loan_book["juan_loan"].id, loan_book["closed_loan"].id}

    def test_nothing_due_yet(self, system, loan_book):
        report = system[-1].overdue(as_of=date(2023, 1, 1))
        assert report.data == []


class TestRunReport:

    def test_by_name(self, system, loan_book):
        report = system[-1].run_report("collections", period="weekly", as_of=date(2024, 3, 10))
        assert report.report_id == "collections"

    def test_unknown(self, system):
        with pytest.raises(UnknownReport):
            system[-1].run_report("profit-and-loss")

    def test_report_errors_are_not_unknown_report(self, system, monkeypatch):
        engine = system[-1]

        def broken():
            raise KeyError("loan_amount")

        monkeypatch.setattr(engine, "active_loans", broken)
        with pytest.raises(KeyError) as excinfo:
            engine.run_report("active-loans")
        assert not isinstance(excinfo.value, UnknownReport)

    def test_to_dict_is_json_ready(self, system, loan_book):
        result = system[-1].active_loans().to_dict()
        assert result["summary"]["total_amount"] == "4000"
        assert isinstance(result["generated_at"], str)
