"""
Login and token verification endpoints
"""

from fastapi import APIRouter, Depends, HTTPException

from .auth import LoanSystem, get_current_context, get_loan_system, issue_token
from .schemas import LoginRequest
from ..access import RequestContext
from ..users import AuthenticationError


router = APIRouter()


@router.post("/login")
def login(
    request: LoginRequest,
    system: LoanSystem = Depends(get_loan_system)
):
    """Authenticate user and return a bearer token"""
    if not request.username or not request.password:
        raise HTTPException(status_code=400, detail="Username and password are required")
    try:
        user = system.user_manager.authenticate(request.username, request.password)
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail=str(e))

    return {
        "token": issue_token(user, system.config),
        "token_type": "bearer",
        "user": {
            "id": user.id,
            "name": user.name,
            "username": user.username,
            "role": user.role.value
        }
    }


@router.get("/verify")
def verify_token(context: RequestContext = Depends(get_current_context)):
    """Return the identity behind the presented token"""
    return {
        "user": {
            "id": context.user_id,
            "name": context.name,
            "username": context.username,
            "role": context.role.value
        }
    }
