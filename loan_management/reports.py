"""
Reporting Engine Module

Tabular reports over the loan book: active loans, outstanding balances per
customer, collections, loans originated per period and overdue installments.
"""

from decimal import Decimal
from datetime import date, datetime, timedelta, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
from enum import Enum

from .customers import CustomerManager
from .loans import LoanManager, LoanStatus
from .overdue import classify
from .payments import PaymentManager
from .schedule import RepaymentScheduleManager, ScheduleStatus
from .storage import json_safe, parse_date
from .logging_config import get_logger


logger = get_logger(__name__)

ZERO = Decimal('0')


class ReportPeriod(Enum):
    """Report time periods, counted back from the report date"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class UnknownReport(LookupError):
    """Raised for a report name the engine does not provide"""


_PERIOD_DAYS = {
    ReportPeriod.DAILY: 0,
    ReportPeriod.WEEKLY: 7,
    ReportPeriod.MONTHLY: 30,
}


@dataclass
class ReportResult:
    """Result of a report execution"""
    report_id: str
    generated_at: datetime
    data: List[Dict[str, Any]] = field(default_factory=list)
    summary: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return json_safe({
            'report_id': self.report_id,
            'generated_at': self.generated_at,
            'summary': self.summary,
            'data': self.data,
            'metadata': self.metadata,
        })


def period_range(
    period: Union[str, ReportPeriod] = ReportPeriod.DAILY,
    as_of: Optional[date] = None,
    start_date: Union[str, date, None] = None,
    end_date: Union[str, date, None] = None
) -> Tuple[date, Optional[date]]:
    """
    Resolve the (start, end) dates a period report covers.

    An explicit start and end date take precedence. Otherwise daily covers
    the report date only, weekly and monthly cover everything from 7 and 30
    days back, with no upper bound.
    """
    if start_date and end_date:
        start = parse_date(start_date, 'start_date')
        end = parse_date(end_date, 'end_date')
        if end < start:
            raise ValueError("End date cannot be before start date")
        return start, end

    try:
        period = ReportPeriod(period)
    except ValueError:
        raise ValueError(f"Unknown report period: {period!r}")
    as_of = as_of or datetime.now(timezone.utc).date()
    if period == ReportPeriod.DAILY:
        return as_of, as_of
    return as_of - timedelta(days=_PERIOD_DAYS[period]), None


def _within(value: date, start: date, end: Optional[date]) -> bool:
    return value >= start and (end is None or value <= end)


class ReportingEngine:
    """
    Reporting engine for the loan book
    """

    def __init__(
        self,
        customers: CustomerManager,
        loans: LoanManager,
        schedule: RepaymentScheduleManager,
        payments: PaymentManager
    ):
        self.customers = customers
        self.loans = loans
        self.schedule = schedule
        self.payments = payments

    def _customer_index(self) -> Dict[str, Any]:
        return {c.id: c for c in self.customers.list_customers()}

    def active_loans(self) -> ReportResult:
        """Active loans with their customers, newest first"""
        customers = self._customer_index()
        loans = self.loans.list_loans(status=LoanStatus.ACTIVE)

        data = []
        for loan in loans:
            customer = customers.get(loan.customer_id)
            row = loan.to_dict()
            row['full_name'] = customer.full_name if customer else None
            row['contact_number'] = customer.contact_number if customer else None
            data.append(row)

        summary = {
            'total': len(loans),
            'total_amount': sum((loan.loan_amount for loan in loans), ZERO)
        }
        return ReportResult('active_loans', datetime.now(timezone.utc), data, summary,
                            {'row_count': len(data)})

    def outstanding_balance(self) -> ReportResult:
        """
        Outstanding balance per customer over Active loans and unpaid rows,
        largest balance first; customers owing nothing are omitted
        """
        customers = self._customer_index()
        totals: Dict[str, Dict[str, Any]] = {}

        for loan in self.loans.list_loans(status=LoanStatus.ACTIVE):
            open_rows = [e for e in self.schedule.list_for_loan(loan.id)
                         if e.status != ScheduleStatus.PAID]
            if not open_rows:
                continue
            entry = totals.setdefault(loan.customer_id, {'loans': set(), 'total': ZERO})
            entry['loans'].add(loan.id)
            entry['total'] += sum((e.outstanding_balance for e in open_rows), ZERO)

        data = []
        for customer_id, entry in totals.items():
            if entry['total'] <= ZERO:
                continue
            customer = customers.get(customer_id)
            data.append({
                'customer_id': customer_id,
                'full_name': customer.full_name if customer else None,
                'contact_number': customer.contact_number if customer else None,
                'active_loans': len(entry['loans']),
                'total_outstanding': entry['total']
            })
        data.sort(key=lambda row: row['total_outstanding'], reverse=True)

        summary = {
            'customers': len(data),
            'total_outstanding': sum((row['total_outstanding'] for row in data), ZERO)
        }
        return ReportResult('outstanding_balance', datetime.now(timezone.utc), data, summary,
                            {'row_count': len(data)})

    def collections(
        self,
        period: Union[str, ReportPeriod] = ReportPeriod.DAILY,
        start_date: Union[str, date, None] = None,
        end_date: Union[str, date, None] = None,
        as_of: Optional[date] = None
    ) -> ReportResult:
        """Payments collected in a period, grouped by date and payment method"""
        start, end = period_range(period, as_of, start_date, end_date)
        payments = [p for p in self.payments.list_payments()
                    if _within(p.payment_date, start, end)]

        groups: Dict[Tuple[date, str], Dict[str, Any]] = {}
        for payment in payments:
            key = (payment.payment_date, payment.payment_method.value)
            group = groups.setdefault(key, {'count': 0, 'total': ZERO, 'customers': set()})
            group['count'] += 1
            group['total'] += payment.amount_paid
            group['customers'].add(payment.customer_id)

        data = [
            {
                'payment_date': payment_date,
                'payment_method': method,
                'payment_count': group['count'],
                'total_collected': group['total'],
                'unique_customers': len(group['customers'])
            }
            for (payment_date, method), group in groups.items()
        ]
        data.sort(key=lambda row: (row['payment_date'], row['payment_method']), reverse=True)

        summary = {
            'total_payments': len(payments),
            'total_amount': sum((p.amount_paid for p in payments), ZERO),
            'unique_customers': len({p.customer_id for p in payments})
        }
        metadata = {
            'period': ReportPeriod(period).value if not (start_date and end_date) else 'custom',
            'start_date': start,
            'end_date': end,
            'row_count': len(data)
        }
        return ReportResult('collections', datetime.now(timezone.utc), data, summary, metadata)

    def loans_by_period(
        self,
        period: Union[str, ReportPeriod] = ReportPeriod.DAILY,
        start_date: Union[str, date, None] = None,
        end_date: Union[str, date, None] = None,
        as_of: Optional[date] = None
    ) -> ReportResult:
        """Loans by start date within a period, grouped per day"""
        start, end = period_range(period, as_of, start_date, end_date)
        loans = [loan for loan in self.loans.list_loans()
                 if _within(loan.start_date, start, end)]

        groups: Dict[date, Dict[str, Any]] = {}
        for loan in loans:
            group = groups.setdefault(loan.start_date, {'count': 0, 'total': ZERO})
            group['count'] += 1
            group['total'] += loan.loan_amount

        data = [
            {'loan_date': loan_date, 'loan_count': group['count'], 'total_amount': group['total']}
            for loan_date, group in sorted(groups.items(), reverse=True)
        ]
        summary = {
            'total_loans': len(loans),
            'total_amount': sum((loan.loan_amount for loan in loans), ZERO)
        }
        metadata = {
            'period': ReportPeriod(period).value if not (start_date and end_date) else 'custom',
            'start_date': start,
            'end_date': end,
            'row_count': len(data)
        }
        return ReportResult('loans_by_period', datetime.now(timezone.utc), data, summary, metadata)

    def overdue(self, as_of: Union[date, datetime, None] = None,
                user_id: Optional[str] = None) -> ReportResult:
        """
        Installments past their due date that are still open.

        Classification runs first; the Unpaid -> Late transitions it calls
        for are then persisted in a separate step.
        """
        as_of = as_of or datetime.now(timezone.utc)
        customers = self._customer_index()
        loans = {loan.id: loan for loan in self.loans.list_loans()}

        overdue_rows = []
        for entry in self.schedule.list_all():
            if not entry.is_open:
                continue
            classification = classify(entry, as_of)
            if classification.days_overdue > 0:
                overdue_rows.append((entry, classification))

        marked = self.schedule.apply_late_transitions(
            [classification for _, classification in overdue_rows], user_id=user_id)
        marked_ids = {entry.id for entry in marked}

        data = []
        for entry, classification in overdue_rows:
            loan = loans.get(entry.loan_id)
            customer = customers.get(loan.customer_id) if loan else None
            row = entry.to_dict()
            if entry.id in marked_ids:
                row['status'] = ScheduleStatus.LATE.value
            row.update({
                'loan_amount': loan.loan_amount if loan else None,
                'loan_term': loan.loan_term if loan else None,
                'customer_id': loan.customer_id if loan else None,
                'full_name': customer.full_name if customer else None,
                'contact_number': customer.contact_number if customer else None,
                'payment_status': classification.derived_status,
                'days_overdue': classification.days_overdue
            })
            data.append(row)

        summary = {
            'overdue_entries': len(data),
            'total_outstanding': sum((e.outstanding_balance for e, _ in overdue_rows), ZERO),
            'marked_late': len(marked)
        }
        as_of_date = as_of.date() if isinstance(as_of, datetime) else as_of
        return ReportResult('overdue', datetime.now(timezone.utc), data, summary,
                            {'as_of': as_of_date, 'row_count': len(data)})

    def run_report(self, name: str, **params: Any) -> ReportResult:
        """Run a report by its URL name (e.g. "active-loans")"""
        reports = {
            'active-loans': self.active_loans,
            'outstanding-balance': self.outstanding_balance,
            'collections': self.collections,
            'loans-by-period': self.loans_by_period,
            'overdue': self.overdue,
        }
        if name not in reports:
            raise UnknownReport(name)
        logger.info("Running report", extra={"extra": {"report": name}})
        return reports[name](**params)
