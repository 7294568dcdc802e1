"""
Payment Module

Records loan payments and allocates each one across the loan's open
repayment schedule rows. Payments are never deleted; only an Admin may amend
one, and amending does not re-run allocation.
"""

from decimal import Decimal
from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from enum import Enum
import uuid

from .allocation import AllocationResult, allocate, validate_payment_amount
from .audit import AuditTrail, AuditEventType
from .loans import LoanManager
from .schedule import RepaymentScheduleManager
from .storage import StorageInterface, StorageRecord, RecordNotFound, parse_date
from .logging_config import get_logger, log_action


logger = get_logger(__name__)


class PaymentMethod(Enum):
    """How a payment was made"""
    CASH = "Cash"
    BANK = "Bank"
    E_WALLET = "E-Wallet"


@dataclass
class Payment(StorageRecord):
    """A payment against a loan"""
    loan_id: str
    customer_id: str
    payment_date: date
    amount_paid: Decimal
    payment_method: PaymentMethod
    recorded_by: str  # user ID
    reference_number: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Payment':
        data = cls.parse_timestamps(data)
        data['payment_date'] = parse_date(data['payment_date'], 'payment_date')
        data['amount_paid'] = Decimal(data['amount_paid'])
        data['payment_method'] = PaymentMethod(data['payment_method'])
        return cls(**data)


@dataclass
class PaymentReceipt:
    """A stored payment together with how it was allocated"""
    payment: Payment
    allocation: AllocationResult


class PaymentManager:
    """Records payments and applies them to repayment schedules"""

    TABLE = 'payments'

    def __init__(self, storage: StorageInterface, loans: LoanManager,
                 schedule: RepaymentScheduleManager,
                 audit_trail: Optional[AuditTrail] = None):
        self.storage = storage
        self.loans = loans
        self.schedule = schedule
        self.audit_trail = audit_trail

    def record_payment(
        self,
        loan_id: str,
        amount_paid: Union[Decimal, str, int, float],
        payment_method: Union[str, PaymentMethod],
        recorded_by: str,
        payment_date: Union[str, date, None] = None,
        customer_id: Optional[str] = None,
        reference_number: Optional[str] = None
    ) -> PaymentReceipt:
        """
        Record a payment and allocate it to the loan's schedule

        The payment insert, the allocation and every row update happen under
        the loan's lock inside one storage transaction, so concurrent payments
        on the same loan never see the same outstanding balances and a failure
        leaves nothing behind.

        Args:
            loan_id: Loan being paid
            amount_paid: Positive amount
            payment_method: Cash, Bank or E-Wallet
            recorded_by: ID of the user recording the payment
            payment_date: Date paid, today when omitted
            customer_id: Paying customer; defaults to and must match the loan's customer
            reference_number: Optional external reference

        Returns:
            PaymentReceipt with the stored payment and its allocation

        Raises:
            InvalidPaymentAmount: If the amount is not positive
            RecordNotFound: If the loan does not exist
            ValueError: If the method, date or customer is invalid
        """
        amount = validate_payment_amount(amount_paid)
        method = PaymentMethod(payment_method)
        paid_on = parse_date(payment_date, 'payment_date') if payment_date else None

        with self.schedule.locks.hold(loan_id):
            with self.storage.atomic():
                # Read under the lock so a concurrent delete_loan is seen
                loan = self.loans.get_loan(loan_id)
                if not loan:
                    raise RecordNotFound(f"Loan {loan_id} not found")
                if customer_id and customer_id != loan.customer_id:
                    raise ValueError("Customer does not match the loan's customer")

                now = datetime.now(timezone.utc)
                payment = Payment(
                    id=str(uuid.uuid4()),
                    created_at=now,
                    updated_at=now,
                    loan_id=loan_id,
                    customer_id=loan.customer_id,
                    payment_date=paid_on or now.date(),
                    amount_paid=amount,
                    payment_method=method,
                    recorded_by=recorded_by,
                    reference_number=(reference_number or None)
                )
                self.storage.save(self.TABLE, payment.id, payment.to_dict())

                result = allocate(amount, self.schedule.outstanding_for_loan(loan_id))
                self.schedule.apply_updates(loan_id, result.updates,
                                            payment_id=payment.id, user_id=recorded_by)

                if self.audit_trail:
                    self.audit_trail.log_event(
                        event_type=AuditEventType.PAYMENT_RECORDED,
                        entity_type="payment",
                        entity_id=payment.id,
                        metadata={
                            "loan_id": loan_id,
                            "amount_paid": amount,
                            "payment_method": method,
                            "applied": result.applied,
                            "unapplied": result.unapplied,
                            "rows_updated": result.rows_updated
                        },
                        user_id=recorded_by
                    )

        log_action(logger, "info", "Payment recorded", user_id=recorded_by,
                   action="create", resource="Payment", entity_id=payment.id,
                   extra={"loan_id": loan_id, "amount_paid": str(amount),
                          "rows_updated": result.rows_updated})
        if result.unapplied > Decimal('0'):
            log_action(logger, "warning", "Payment exceeds outstanding balance; residual not applied",
                       user_id=recorded_by, action="create", resource="Payment",
                       entity_id=payment.id,
                       extra={"loan_id": loan_id, "unapplied": str(result.unapplied)})
        return PaymentReceipt(payment=payment, allocation=result)

    def get_payment(self, payment_id: str) -> Optional[Payment]:
        """Get payment by ID"""
        data = self.storage.load(self.TABLE, payment_id)
        if not data:
            return None
        return Payment.from_dict(data)

    def list_payments(self) -> List[Payment]:
        """All payments, newest first"""
        payments = [Payment.from_dict(data) for data in self.storage.load_all(self.TABLE)]
        return sorted(payments, key=lambda p: (p.payment_date, p.created_at), reverse=True)

    def list_for_loan(self, loan_id: str) -> List[Payment]:
        """A loan's payments, newest first"""
        payments = [Payment.from_dict(data)
                    for data in self.storage.find(self.TABLE, {'loan_id': loan_id})]
        return sorted(payments, key=lambda p: (p.payment_date, p.created_at), reverse=True)

    def amend_payment(
        self,
        payment_id: str,
        amended_by: str,
        payment_date: Union[str, date, None] = None,
        amount_paid: Union[Decimal, str, int, float, None] = None,
        payment_method: Union[str, PaymentMethod, None] = None,
        reference_number: Optional[str] = None
    ) -> Payment:
        """
        Correct a recorded payment's details

        The schedule is not re-allocated; rows keep the balances the original
        allocation gave them.
        """
        payment = self.get_payment(payment_id)
        if not payment:
            raise RecordNotFound(f"Payment {payment_id} not found")

        previous = {"amount_paid": payment.amount_paid,
                    "payment_method": payment.payment_method,
                    "payment_date": payment.payment_date}
        if amount_paid is not None:
            payment.amount_paid = validate_payment_amount(amount_paid)
        if payment_method is not None:
            payment.payment_method = PaymentMethod(payment_method)
        if payment_date is not None:
            payment.payment_date = parse_date(payment_date, 'payment_date')
        if reference_number is not None:
            payment.reference_number = reference_number or None

        payment.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.TABLE, payment.id, payment.to_dict())

        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.PAYMENT_AMENDED,
                entity_type="payment",
                entity_id=payment.id,
                metadata={"previous": previous,
                          "amount_paid": payment.amount_paid,
                          "payment_method": payment.payment_method,
                          "payment_date": payment.payment_date},
                user_id=amended_by
            )
        log_action(logger, "info", "Payment amended", user_id=amended_by,
                   action="edit", resource="Payment", entity_id=payment.id)
        return payment
