"""
Loan Management Module

Loan origination and maintenance. Each loan belongs to exactly one customer
and owns an ordered repayment schedule (see schedule.py).
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from enum import Enum
import uuid

from .storage import (
    StorageInterface, StorageRecord, RecordNotFound, KeyedLock, parse_date, parse_decimal
)
from .audit import AuditTrail, AuditEventType
from .customers import CustomerManager
from .logging_config import get_logger, log_action


logger = get_logger(__name__)


class LoanTerm(Enum):
    """Repayment frequency"""
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"


class LoanStatus(Enum):
    """Loan lifecycle status"""
    PENDING = "Pending"
    APPROVED = "Approved"
    ACTIVE = "Active"
    CLOSED = "Closed"


@dataclass
class Loan(StorageRecord):
    """Loan granted to a customer"""
    customer_id: str
    loan_amount: Decimal
    interest_rate: Decimal  # percent
    loan_term: LoanTerm
    start_date: date
    end_date: date
    loan_status: LoanStatus = LoanStatus.PENDING

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Loan':
        data = cls.parse_timestamps(data)
        data['loan_amount'] = Decimal(data['loan_amount'])
        data['interest_rate'] = Decimal(data['interest_rate'])
        data['loan_term'] = LoanTerm(data['loan_term'])
        data['start_date'] = parse_date(data['start_date'], 'start_date')
        data['end_date'] = parse_date(data['end_date'], 'end_date')
        data['loan_status'] = LoanStatus(data['loan_status'])
        return cls(**data)


def _validate_terms(loan_amount: Decimal, interest_rate: Decimal,
                    start_date: date, end_date: date) -> None:
    if loan_amount <= Decimal('0'):
        raise ValueError("Loan amount must be positive")
    if interest_rate < Decimal('0'):
        raise ValueError("Interest rate cannot be negative")
    if end_date < start_date:
        raise ValueError("End date cannot be before start date")


class LoanManager:
    """Manages loan records"""

    TABLE = 'loans'

    def __init__(self, storage: StorageInterface, customers: CustomerManager,
                 audit_trail: Optional[AuditTrail] = None,
                 locks: Optional[KeyedLock] = None):
        self.storage = storage
        self.customers = customers
        self.audit_trail = audit_trail
        self.locks = locks or KeyedLock()

    def create_loan(
        self,
        customer_id: str,
        loan_amount: Union[Decimal, str, int, float],
        interest_rate: Union[Decimal, str, int, float],
        loan_term: Union[str, LoanTerm],
        start_date: Union[str, date],
        end_date: Union[str, date],
        loan_status: Union[str, LoanStatus] = LoanStatus.PENDING,
        created_by: Optional[str] = None
    ) -> Loan:
        """
        Originate a loan for an existing customer

        Raises:
            RecordNotFound: If the customer does not exist
            ValueError: If the loan terms are invalid
        """
        amount = parse_decimal(loan_amount, 'loan_amount')
        rate = parse_decimal(interest_rate, 'interest_rate')
        start = parse_date(start_date, 'start_date')
        end = parse_date(end_date, 'end_date')
        _validate_terms(amount, rate, start, end)
        term = LoanTerm(loan_term)
        status = LoanStatus(loan_status)

        # Customer check and insert commit together
        with self.storage.atomic():
            if not self.customers.get_customer(customer_id):
                raise RecordNotFound(f"Customer {customer_id} not found")

            now = datetime.now(timezone.utc)
            loan = Loan(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                customer_id=customer_id,
                loan_amount=amount,
                interest_rate=rate,
                loan_term=term,
                start_date=start,
                end_date=end,
                loan_status=status
            )
            self.storage.save(self.TABLE, loan.id, loan.to_dict())

            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.LOAN_CREATED,
                    entity_type="loan",
                    entity_id=loan.id,
                    metadata={
                        "customer_id": customer_id,
                        "loan_amount": amount,
                        "interest_rate": rate,
                        "loan_term": loan.loan_term,
                        "loan_status": loan.loan_status
                    },
                    user_id=created_by
                )
        log_action(logger, "info", "Loan created", user_id=created_by,
                   action="create", resource="Loan", entity_id=loan.id,
                   extra={"customer_id": customer_id, "loan_amount": str(amount)})
        return loan

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        data = self.storage.load(self.TABLE, loan_id)
        if not data:
            return None
        return Loan.from_dict(data)

    def list_loans(self, status: Optional[LoanStatus] = None) -> List[Loan]:
        """List loans, newest first"""
        loans = [Loan.from_dict(data) for data in self.storage.load_all(self.TABLE)]
        if status is not None:
            loans = [loan for loan in loans if loan.loan_status == LoanStatus(status)]
        return sorted(loans, key=lambda loan: loan.created_at, reverse=True)

    def list_for_customer(self, customer_id: str) -> List[Loan]:
        """List a customer's loans, newest first"""
        loans = [Loan.from_dict(data)
                 for data in self.storage.find(self.TABLE, {'customer_id': customer_id})]
        return sorted(loans, key=lambda loan: loan.created_at, reverse=True)

    def update_loan(
        self,
        loan_id: str,
        customer_id: Optional[str] = None,
        loan_amount: Union[Decimal, str, int, float, None] = None,
        interest_rate: Union[Decimal, str, int, float, None] = None,
        loan_term: Union[str, LoanTerm, None] = None,
        start_date: Union[str, date, None] = None,
        end_date: Union[str, date, None] = None,
        loan_status: Union[str, LoanStatus, None] = None,
        updated_by: Optional[str] = None
    ) -> Loan:
        """Update loan details; omitted fields are left unchanged"""
        with self.locks.hold(loan_id), self.storage.atomic():
            loan = self.get_loan(loan_id)
            if not loan:
                raise RecordNotFound(f"Loan {loan_id} not found")

            if customer_id is not None and customer_id != loan.customer_id:
                if not self.customers.get_customer(customer_id):
                    raise RecordNotFound(f"Customer {customer_id} not found")
                loan.customer_id = customer_id
            if loan_amount is not None:
                loan.loan_amount = parse_decimal(loan_amount, 'loan_amount')
            if interest_rate is not None:
                loan.interest_rate = parse_decimal(interest_rate, 'interest_rate')
            if loan_term is not None:
                loan.loan_term = LoanTerm(loan_term)
            if start_date is not None:
                loan.start_date = parse_date(start_date, 'start_date')
            if end_date is not None:
                loan.end_date = parse_date(end_date, 'end_date')
            if loan_status is not None:
                loan.loan_status = LoanStatus(loan_status)
            _validate_terms(loan.loan_amount, loan.interest_rate, loan.start_date, loan.end_date)

            loan.updated_at = datetime.now(timezone.utc)
            self.storage.save(self.TABLE, loan.id, loan.to_dict())

            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.LOAN_UPDATED,
                    entity_type="loan",
                    entity_id=loan.id,
                    metadata={"loan_status": loan.loan_status, "loan_amount": loan.loan_amount},
                    user_id=updated_by
                )
        log_action(logger, "info", "Loan updated", user_id=updated_by,
                   action="edit", resource="Loan", entity_id=loan.id)
        return loan

    def delete_loan(self, loan_id: str, deleted_by: Optional[str] = None) -> bool:
        """
        Delete a loan together with its repayment schedule

        Returns False when the loan does not exist. Loans with recorded
        payments cannot be deleted. Runs under the loan's lock, so no payment
        can be recorded between the check and the delete.
        """
        with self.locks.hold(loan_id), self.storage.atomic():
            loan = self.get_loan(loan_id)
            if not loan:
                return False
            if self.storage.find('payments', {'loan_id': loan_id}):
                raise ValueError("Loan has recorded payments and cannot be deleted")

            for entry in self.storage.find('repayment_schedule', {'loan_id': loan_id}):
                self.storage.delete('repayment_schedule', entry['id'])
            self.storage.delete(self.TABLE, loan_id)
            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.LOAN_DELETED,
                    entity_type="loan",
                    entity_id=loan_id,
                    metadata={"customer_id": loan.customer_id},
                    user_id=deleted_by
                )
        log_action(logger, "info", "Loan deleted", user_id=deleted_by,
                   action="delete", resource="Loan", entity_id=loan_id)
        return True
