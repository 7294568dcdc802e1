"""
Repayment schedule endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, status

from .auth import LoanSystem, get_loan_system, require_access, require_admin
from .schemas import CreateScheduleEntryRequest, UpdateScheduleEntryRequest
from ..access import Operation, RequestContext, Resource
from ..storage import RecordNotFound, json_safe


router = APIRouter()


@router.get("")
def list_schedule(
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.REPAYMENT)),
    system: LoanSystem = Depends(get_loan_system)
):
    """All schedule rows with loan amount and customer name, ascending due date"""
    loans = {loan.id: loan for loan in system.loan_manager.list_loans()}
    customers = {c.id: c for c in system.customer_manager.list_customers()}

    result = []
    for entry in system.schedule_manager.list_all():
        row = entry.to_dict()
        loan = loans.get(entry.loan_id)
        customer = customers.get(loan.customer_id) if loan else None
        row["loan_amount"] = loan.loan_amount if loan else None
        row["full_name"] = customer.full_name if customer else None
        result.append(json_safe(row))
    return result


@router.get("/loan/{loan_id}")
def list_loan_schedule(
    loan_id: str,
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.REPAYMENT)),
    system: LoanSystem = Depends(get_loan_system)
):
    """A loan's schedule rows, ascending due date"""
    return [json_safe(entry.to_dict()) for entry in system.schedule_manager.list_for_loan(loan_id)]


@router.post("", status_code=status.HTTP_201_CREATED)
def create_schedule_entry(
    request: CreateScheduleEntryRequest,
    context: RequestContext = Depends(require_admin),
    system: LoanSystem = Depends(get_loan_system)
):
    """Add an installment to a loan's schedule (Admin only)"""
    try:
        entry = system.schedule_manager.create_entry(
            loan_id=request.loan_id,
            due_date=request.due_date,
            amount_due=request.amount_due,
            outstanding_balance=request.outstanding_balance,
            status=request.status,
            created_by=context.user_id
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Loan not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"schedule_id": entry.id, "message": "Repayment schedule created successfully"}


@router.put("/{schedule_id}")
def update_schedule_entry(
    schedule_id: str,
    request: UpdateScheduleEntryRequest,
    context: RequestContext = Depends(require_admin),
    system: LoanSystem = Depends(get_loan_system)
):
    """Correct a schedule row (Admin only)"""
    try:
        system.schedule_manager.update_entry(
            schedule_id,
            updated_by=context.user_id,
            **request.model_dump(exclude_unset=True)
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Repayment schedule not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "Repayment schedule updated successfully"}
