"""
Loan endpoints
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Response, status

from .auth import LoanSystem, get_loan_system, require_access, require_admin
from .schemas import CreateLoanRequest, UpdateLoanRequest
from ..access import Operation, RequestContext, Resource
from ..export import XLSX_MEDIA_TYPE, rows_to_workbook
from ..loans import Loan
from ..storage import RecordNotFound, json_safe


router = APIRouter()


def _with_customer(system: LoanSystem, loan: Loan) -> Dict[str, Any]:
    row = loan.to_dict()
    customer = system.customer_manager.get_customer(loan.customer_id)
    row["full_name"] = customer.full_name if customer else None
    row["contact_number"] = customer.contact_number if customer else None
    return row


@router.get("")
def list_loans(
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.LOAN)),
    system: LoanSystem = Depends(get_loan_system)
):
    """List loans with customer details, newest first"""
    return [json_safe(_with_customer(system, loan)) for loan in system.loan_manager.list_loans()]


@router.get("/export/excel")
def export_loans(
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.LOAN)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Export loans as an Excel workbook"""
    rows = [_with_customer(system, loan) for loan in system.loan_manager.list_loans()]
    content = rows_to_workbook(rows, "Loans", columns=[
        "id", "customer_id", "full_name", "loan_amount", "interest_rate",
        "loan_term", "start_date", "end_date", "loan_status"
    ])
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=loans.xlsx"}
    )


@router.get("/customer/{customer_id}")
def list_customer_loans(
    customer_id: str,
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.LOAN)),
    system: LoanSystem = Depends(get_loan_system)
):
    """List a customer's loans, newest first"""
    return [json_safe(loan.to_dict()) for loan in system.loan_manager.list_for_customer(customer_id)]


@router.get("/{loan_id}")
def get_loan(
    loan_id: str,
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.LOAN)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Get loan by ID"""
    loan = system.loan_manager.get_loan(loan_id)
    if not loan:
        raise HTTPException(status_code=404, detail="Loan not found")
    return json_safe(_with_customer(system, loan))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_loan(
    request: CreateLoanRequest,
    context: RequestContext = Depends(require_access(Operation.CREATE, Resource.LOAN)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Originate a new loan"""
    try:
        loan = system.loan_manager.create_loan(
            customer_id=request.customer_id,
            loan_amount=request.loan_amount,
            interest_rate=request.interest_rate,
            loan_term=request.loan_term,
            start_date=request.start_date,
            end_date=request.end_date,
            loan_status=request.loan_status,
            created_by=context.user_id
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Customer not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"loan_id": loan.id, "message": "Loan created successfully"}


@router.put("/{loan_id}")
def update_loan(
    loan_id: str,
    request: UpdateLoanRequest,
    context: RequestContext = Depends(require_access(Operation.EDIT, Resource.LOAN)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Update loan details"""
    try:
        system.loan_manager.update_loan(
            loan_id,
            updated_by=context.user_id,
            **request.model_dump(exclude_unset=True)
        )
    except RecordNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "Loan updated successfully"}


@router.delete("/{loan_id}")
def delete_loan(
    loan_id: str,
    context: RequestContext = Depends(require_admin),
    system: LoanSystem = Depends(get_loan_system)
):
    """Delete a loan and its schedule (Admin only)"""
    try:
        deleted = system.loan_manager.delete_loan(loan_id, deleted_by=context.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Loan not found")

    return {"message": "Loan deleted successfully"}
