"""
User management endpoints

Only Admin holds any permission on the User resource.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from .auth import LoanSystem, get_loan_system, require_access, require_admin
from .schemas import CreateUserRequest, UpdateUserRequest
from ..access import Operation, RequestContext, Resource
from ..storage import RecordNotFound, json_safe


router = APIRouter()

view_users = require_access(Operation.VIEW, Resource.USER)


@router.get("")
def list_users(
    context: RequestContext = Depends(view_users),
    system: LoanSystem = Depends(get_loan_system)
):
    """List users, newest first"""
    return [json_safe(user.to_public_dict()) for user in system.user_manager.list_users()]


@router.get("/{user_id}")
def get_user(
    user_id: str,
    context: RequestContext = Depends(view_users),
    system: LoanSystem = Depends(get_loan_system)
):
    """Get user by ID"""
    user = system.user_manager.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return json_safe(user.to_public_dict())


@router.post("", status_code=status.HTTP_201_CREATED)
def create_user(
    request: CreateUserRequest,
    context: RequestContext = Depends(require_access(Operation.CREATE, Resource.USER)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Create a user"""
    try:
        user = system.user_manager.create_user(
            name=request.name,
            username=request.username,
            password=request.password,
            role=request.role,
            status=request.status,
            created_by=context.user_id
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"user_id": user.id, "message": "User created successfully"}


@router.put("/{user_id}")
def update_user(
    user_id: str,
    request: UpdateUserRequest,
    context: RequestContext = Depends(require_access(Operation.EDIT, Resource.USER)),
    system: LoanSystem = Depends(get_loan_system)
):
    """Update a user; the password changes only when one is given"""
    try:
        system.user_manager.update_user(
            user_id,
            updated_by=context.user_id,
            **request.model_dump(exclude_unset=True)
        )
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="User not found")
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {"message": "User updated successfully"}


@router.delete("/{user_id}")
def delete_user(
    user_id: str,
    context: RequestContext = Depends(require_admin),
    system: LoanSystem = Depends(get_loan_system)
):
    """Delete a user"""
    if not system.user_manager.delete_user(user_id, deleted_by=context.user_id):
        raise HTTPException(status_code=404, detail="User not found")

    return {"message": "User deleted successfully"}
