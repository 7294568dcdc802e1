"""
Audit Trail Module

Hash-chained immutable audit log with SHA-256 for tamper detection.
Every state change in the loan book is logged here.
"""

import hashlib
import json
import uuid
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional, Any
from enum import Enum

from .storage import StorageInterface, StorageRecord, json_safe


class AuditEventType(Enum):
    """Types of audit events"""
    # User events
    USER_CREATED = "user_created"
    USER_UPDATED = "user_updated"
    USER_DELETED = "user_deleted"
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"

    # Customer events
    CUSTOMER_CREATED = "customer_created"
    CUSTOMER_UPDATED = "customer_updated"
    CUSTOMER_DELETED = "customer_deleted"

    # Loan events
    LOAN_CREATED = "loan_created"
    LOAN_UPDATED = "loan_updated"
    LOAN_DELETED = "loan_deleted"

    # Repayment schedule events
    SCHEDULE_ENTRY_CREATED = "schedule_entry_created"
    SCHEDULE_ENTRY_UPDATED = "schedule_entry_updated"
    SCHEDULE_ALLOCATED = "schedule_allocated"
    SCHEDULE_MARKED_LATE = "schedule_marked_late"

    # Payment events
    PAYMENT_RECORDED = "payment_recorded"
    PAYMENT_AMENDED = "payment_amended"


@dataclass
class AuditEvent(StorageRecord):
    """
    Immutable audit event with hash chaining for tamper detection
    """
    event_type: AuditEventType
    entity_type: str  # customer, loan, schedule_entry, payment, user
    entity_id: str
    previous_hash: str  # Hash of previous audit event for chaining
    current_hash: str   # SHA-256 hash of this event
    metadata: Dict[str, Any]
    user_id: Optional[str] = None  # User who initiated the action

    def __post_init__(self):
        self.metadata = json_safe(self.metadata or {})

    def calculate_hash(self) -> str:
        """
        Calculate SHA-256 hash of this event
        Hash includes all fields except current_hash to prevent circular reference
        """
        hash_data = {
            'id': self.id,
            'created_at': self.created_at.isoformat(),
            'event_type': self.event_type.value,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
            'previous_hash': self.previous_hash,
            'user_id': self.user_id,
            'metadata': self.metadata
        }

        json_data = json.dumps(hash_data, sort_keys=True, separators=(',', ':'))
        return hashlib.sha256(json_data.encode('utf-8')).hexdigest()

    def verify_hash(self) -> bool:
        """Verify that the current hash is correct"""
        return self.current_hash == self.calculate_hash()

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditEvent':
        """Create AuditEvent from a stored dictionary"""
        data = cls.parse_timestamps(data)
        data['event_type'] = AuditEventType(data['event_type'])
        return cls(**data)


class AuditTrail:
    """
    Hash-chained audit trail for tamper detection
    """

    def __init__(self, storage: StorageInterface, table_name: str = "audit_events"):
        self.storage = storage
        self.table_name = table_name

    def _last_hash(self) -> str:
        """Hash of the most recent stored event, reloaded so rolled back writes drop out"""
        events = self.storage.load_all(self.table_name)
        if events:
            return events[-1].get('current_hash', "")
        return ""

    def log_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None
    ) -> AuditEvent:
        """
        Log an audit event with hash chaining

        Args:
            event_type: Type of audit event
            entity_type: Type of entity being audited
            entity_id: ID of the entity
            metadata: Additional event-specific data
            user_id: ID of user who initiated the action

        Returns:
            Created AuditEvent
        """
        # The storage transaction serializes chain reads and appends
        with self.storage.atomic():
            now = datetime.now(timezone.utc)
            event = AuditEvent(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                previous_hash=self._last_hash(),
                current_hash="",
                user_id=user_id,
                metadata=metadata or {}
            )
            event.current_hash = event.calculate_hash()
            self.storage.save(self.table_name, event.id, event.to_dict())
            return event

    def get_events_for_entity(self, entity_type: str, entity_id: str) -> List[AuditEvent]:
        """Get all audit events for a specific entity in chain order"""
        events_data = self.storage.find(self.table_name, {
            'entity_type': entity_type,
            'entity_id': entity_id
        })
        return [AuditEvent.from_dict(data) for data in events_data]

    def get_all_events(
        self,
        event_type: Optional[AuditEventType] = None,
        limit: Optional[int] = None
    ) -> List[AuditEvent]:
        """
        Get audit events in chain order

        Args:
            event_type: Only return events of this type
            limit: Return only the most recent N events

        Returns:
            List of AuditEvent objects
        """
        events = [AuditEvent.from_dict(data) for data in self.storage.load_all(self.table_name)]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        if limit:
            events = events[-limit:]
        return events

    def verify_integrity(self) -> Dict[str, Any]:
        """
        Verify the integrity of the entire audit chain

        Returns:
            Dictionary with integrity check results
        """
        result = {
            'valid': True,
            'total_events': 0,
            'hash_errors': [],
            'chain_breaks': []
        }

        events = [AuditEvent.from_dict(data) for data in self.storage.load_all(self.table_name)]
        result['total_events'] = len(events)

        previous_hash = ""
        for i, event in enumerate(events):
            if not event.verify_hash():
                result['valid'] = False
                result['hash_errors'].append({
                    'event_id': event.id,
                    'position': i,
                    'expected_hash': event.calculate_hash(),
                    'actual_hash': event.current_hash
                })
            if event.previous_hash != previous_hash:
                result['valid'] = False
                result['chain_breaks'].append({
                    'event_id': event.id,
                    'position': i,
                    'expected_previous_hash': previous_hash,
                    'actual_previous_hash': event.previous_hash
                })
            previous_hash = event.current_hash

        return result

    def count_events(self) -> int:
        """Get total number of audit events"""
        return self.storage.count(self.table_name)
