"""
Audit trail endpoints (Admin only)
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from .auth import LoanSystem, get_loan_system, require_admin
from ..access import RequestContext
from ..audit import AuditEventType
from ..storage import json_safe


router = APIRouter()


@router.get("/events")
def list_events(
    event_type: Optional[str] = None,
    limit: Optional[int] = 100,
    context: RequestContext = Depends(require_admin),
    system: LoanSystem = Depends(get_loan_system)
):
    """Most recent audit events, oldest first"""
    try:
        type_filter = AuditEventType(event_type) if event_type else None
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown event type: {event_type}")

    events = system.audit_trail.get_all_events(event_type=type_filter, limit=limit)
    return {"events": [json_safe(event.to_dict()) for event in events], "count": len(events)}


@router.get("/integrity")
def verify_integrity(
    context: RequestContext = Depends(require_admin),
    system: LoanSystem = Depends(get_loan_system)
):
    """Re-validate the audit hash chain"""
    return system.audit_trail.verify_integrity()
