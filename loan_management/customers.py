"""
Customer Management Module

Registers borrowers and maintains their identification and contact details.
"""

from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union
from enum import Enum
import uuid

from .storage import StorageInterface, StorageRecord, RecordNotFound, parse_date
from .audit import AuditTrail, AuditEventType
from .logging_config import get_logger, log_action


logger = get_logger(__name__)


class CustomerStatus(Enum):
    """Customer status"""
    ACTIVE = "Active"
    INACTIVE = "Inactive"


@dataclass
class Customer(StorageRecord):
    """Registered borrower"""
    full_name: str
    contact_number: str
    address: str
    id_type: str
    id_number: str
    date_registered: date
    status: CustomerStatus = CustomerStatus.ACTIVE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Customer':
        data = cls.parse_timestamps(data)
        data['date_registered'] = parse_date(data['date_registered'], 'date_registered')
        data['status'] = CustomerStatus(data['status'])
        return cls(**data)


_REQUIRED_FIELDS = ('full_name', 'contact_number', 'address', 'id_type', 'id_number')


class CustomerManager:
    """Manages customer records"""

    TABLE = 'customers'

    def __init__(self, storage: StorageInterface, audit_trail: Optional[AuditTrail] = None):
        self.storage = storage
        self.audit_trail = audit_trail

    def create_customer(
        self,
        full_name: str,
        contact_number: str,
        address: str,
        id_type: str,
        id_number: str,
        date_registered: Union[str, date, None] = None,
        status: Union[str, CustomerStatus] = CustomerStatus.ACTIVE,
        created_by: Optional[str] = None
    ) -> Customer:
        """
        Register a new customer

        Args:
            full_name: Customer's full name
            contact_number: Phone or other contact number
            address: Home address
            id_type: Identity document type (e.g. passport, national ID)
            id_number: Identity document number
            date_registered: Registration date, today when omitted
            status: Initial status, Active by default
            created_by: ID of the user registering the customer

        Returns:
            Created Customer object

        Raises:
            ValueError: If a required field is blank or a value is invalid
        """
        values = {
            'full_name': full_name,
            'contact_number': contact_number,
            'address': address,
            'id_type': id_type,
            'id_number': id_number,
        }
        missing = [name for name in _REQUIRED_FIELDS if not str(values[name] or "").strip()]
        if missing:
            raise ValueError(f"Missing required fields: {', '.join(missing)}")

        now = datetime.now(timezone.utc)
        customer = Customer(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            date_registered=(parse_date(date_registered, 'date_registered')
                             if date_registered else now.date()),
            status=CustomerStatus(status),
            **{name: str(value).strip() for name, value in values.items()}
        )
        self.storage.save(self.TABLE, customer.id, customer.to_dict())

        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.CUSTOMER_CREATED,
                entity_type="customer",
                entity_id=customer.id,
                metadata={"full_name": customer.full_name, "status": customer.status},
                user_id=created_by
            )
        log_action(logger, "info", "Customer created", user_id=created_by,
                   action="create", resource="Customer", entity_id=customer.id)
        return customer

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        """Get customer by ID"""
        data = self.storage.load(self.TABLE, customer_id)
        if not data:
            return None
        return Customer.from_dict(data)

    def list_customers(self, status: Optional[CustomerStatus] = None) -> List[Customer]:
        """List customers, newest registration first"""
        customers = [Customer.from_dict(data) for data in self.storage.load_all(self.TABLE)]
        if status is not None:
            customers = [c for c in customers if c.status == CustomerStatus(status)]
        return sorted(customers, key=lambda c: (c.date_registered, c.created_at), reverse=True)

    def update_customer(
        self,
        customer_id: str,
        full_name: Optional[str] = None,
        contact_number: Optional[str] = None,
        address: Optional[str] = None,
        id_type: Optional[str] = None,
        id_number: Optional[str] = None,
        date_registered: Union[str, date, None] = None,
        status: Union[str, CustomerStatus, None] = None,
        updated_by: Optional[str] = None
    ) -> Customer:
        """Update customer details; omitted fields are left unchanged"""
        customer = self.get_customer(customer_id)
        if not customer:
            raise RecordNotFound(f"Customer {customer_id} not found")

        changes = {
            'full_name': full_name,
            'contact_number': contact_number,
            'address': address,
            'id_type': id_type,
            'id_number': id_number,
        }
        for name, value in changes.items():
            if value is None:
                continue
            if not str(value).strip():
                raise ValueError(f"{name} cannot be empty")
            setattr(customer, name, str(value).strip())
        if date_registered is not None:
            customer.date_registered = parse_date(date_registered, 'date_registered')
        if status is not None:
            customer.status = CustomerStatus(status)

        customer.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.TABLE, customer.id, customer.to_dict())

        if self.audit_trail:
            self.audit_trail.log_event(
                event_type=AuditEventType.CUSTOMER_UPDATED,
                entity_type="customer",
                entity_id=customer.id,
                metadata={k: v for k, v in changes.items() if v is not None},
                user_id=updated_by
            )
        log_action(logger, "info", "Customer updated", user_id=updated_by,
                   action="edit", resource="Customer", entity_id=customer.id)
        return customer

    def delete_customer(self, customer_id: str, deleted_by: Optional[str] = None) -> bool:
        """
        Delete a customer

        Returns False when the customer does not exist. Customers that still
        own loans cannot be deleted.
        """
        with self.storage.atomic():
            customer = self.get_customer(customer_id)
            if not customer:
                return False
            if self.storage.find('loans', {'customer_id': customer_id}):
                raise ValueError("Customer has loans and cannot be deleted")

            self.storage.delete(self.TABLE, customer_id)
            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.CUSTOMER_DELETED,
                    entity_type="customer",
                    entity_id=customer_id,
                    metadata={"full_name": customer.full_name},
                    user_id=deleted_by
                )
        log_action(logger, "info", "Customer deleted", user_id=deleted_by,
                   action="delete", resource="Customer", entity_id=customer_id)
        return True
