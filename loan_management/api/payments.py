"""
Payment endpoints
"""

from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from .auth import LoanSystem, get_loan_system, require_access, require_admin
from .schemas import AmendPaymentRequest, RecordPaymentRequest
from ..access import Operation, RequestContext, Resource
from ..payments import Payment
from ..storage import RecordNotFound, json_safe


router = APIRouter()


def _with_names(system: LoanSystem, payments: List[Payment]) -> List[Dict[str, Any]]:
    customers = {c.id: c for c in system.customer_manager.list_customers()}
    users = {u.id: u for u in system.user_manager.list_users()}

    result = []
    for payment in payments:
        row = payment.to_dict()
        customer = customers.get(payment.customer_id)
        recorder = users.get(payment.recorded_by)
        row["full_name"] = customer.full_name if customer else None
        row["recorded_by_name"] = recorder.name if recorder else None
        result.append(json_safe(row))
    return result


@router.get("")
def list_payments(
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.PAYMENT)),
    system: LoanSystem = Depends(get_loan_system)
):
    """List payments with customer and recorder names, newest first"""
    return _with_names(system, system.payment_manager.list_payments())


@router.get("/loan/{loan_id}")
def list_loan_payments(
    loan_id: str,
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.PAYMENT)),
    system: LoanSystem = Depends(get_loan_system)
):
    """A loan's payments, newest first"""
    return _with_names(system, system.payment_manager.list_for_loan(loan_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def record_payment(
    request: RecordPaymentRequest,
    context: RequestContext = Depends(require_access(Operation.CREATE, Resource.PAYMENT)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Record a payment and allocate it to the loan's schedule"""
    try:
        receipt = system.payment_manager.record_payment(
            loan_id=request.loan_id,
            amount_paid=request.amount_paid,
            payment_method=request.payment_method,
            recorded_by=context.user_id,
            payment_date=request.payment_date,
            customer_id=request.customer_id,
            reference_number=request.reference_number
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Loan not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    allocation = receipt.allocation
    return json_safe({
        "payment_id": receipt.payment.id,
        "message": "Payment recorded successfully",
        "allocation": {
            "rows_updated": allocation.rows_updated,
            "applied": allocation.applied,
            "unapplied": allocation.unapplied,
            "updates": [
                {
                    "schedule_id": update.schedule_id,
                    "outstanding_balance": update.new_outstanding_balance,
                    "status": update.new_status
                }
                for update in allocation.updates
            ]
        }
    })


@router.put("/{payment_id}")
def amend_payment(
    payment_id: str,
    request: AmendPaymentRequest,
    context: RequestContext = Depends(require_admin),
    system: LoanSystem = Depends(get_loan_system)
):
    """Amend a recorded payment (Admin only); the schedule is not re-allocated"""
    try:
        system.payment_manager.amend_payment(
            payment_id,
            amended_by=context.user_id,
            **request.model_dump(exclude_unset=True)
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Payment not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "Payment updated successfully"}
