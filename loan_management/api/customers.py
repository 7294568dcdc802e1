"""
Customer management endpoints
"""

from fastapi import APIRouter, Depends, HTTPException, Response, status

from .auth import LoanSystem, get_loan_system, require_access, require_admin
from .schemas import CreateCustomerRequest, UpdateCustomerRequest
from ..access import Operation, RequestContext, Resource
from ..export import XLSX_MEDIA_TYPE, rows_to_workbook
from ..storage import RecordNotFound, json_safe


router = APIRouter()


@router.get("")
def list_customers(
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.CUSTOMER)),
    system: LoanSystem = Depends(get_loan_system)
):
    """List customers, newest first"""
    return [json_safe(c.to_dict()) for c in system.customer_manager.list_customers()]


@router.get("/export/excel")
def export_customers(
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.CUSTOMER)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Export customers as an Excel workbook"""
    rows = [c.to_dict() for c in system.customer_manager.list_customers()]
    content = rows_to_workbook(rows, "Customers", columns=[
        "id", "full_name", "contact_number", "address", "id_type",
        "id_number", "date_registered", "status"
    ])
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": "attachment; filename=customers.xlsx"}
    )


@router.get("/{customer_id}")
def get_customer(
    customer_id: str,
    context: RequestContext = Depends(require_access(Operation.VIEW, Resource.CUSTOMER)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Get customer by ID"""
    customer = system.customer_manager.get_customer(customer_id)
    if not customer:
        raise HTTPException(status_code=404, detail="Customer not found")
    return json_safe(customer.to_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_customer(
    request: CreateCustomerRequest,
    context: RequestContext = Depends(require_access(Operation.CREATE, Resource.CUSTOMER)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Register a new customer"""
    try:
        customer = system.customer_manager.create_customer(
            full_name=request.full_name,
            contact_number=request.contact_number,
            address=request.address,
            id_type=request.id_type,
            id_number=request.id_number,
            date_registered=request.date_registered,
            status=request.status,
            created_by=context.user_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"customer_id": customer.id, "message": "Customer created successfully"}


@router.put("/{customer_id}")
def update_customer(
    customer_id: str,
    request: UpdateCustomerRequest,
    context: RequestContext = Depends(require_access(Operation.EDIT, Resource.CUSTOMER)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Update customer information"""
    try:
        system.customer_manager.update_customer(
            customer_id,
            updated_by=context.user_id,
            **request.model_dump(exclude_unset=True)
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Customer not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "Customer updated successfully"}


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: str,
    context: RequestContext = Depends(require_admin),
    system: LoanSystem = Depends(get_loan_system)
):
    """Delete a customer (Admin only)"""
    try:
        deleted = system.customer_manager.delete_customer(customer_id, deleted_by=context.user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="Customer not found")

    return {"message": "Customer deleted successfully"}
