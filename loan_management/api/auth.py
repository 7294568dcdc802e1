"""
Authentication and authorization dependencies
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..access import Operation, RequestContext, Resource, allowed, can_delete
from ..audit import AuditTrail
from ..config import LoanConfig, get_config
from ..customers import CustomerManager
from ..loans import LoanManager
from ..payments import PaymentManager
from ..reports import ReportingEngine
from ..schedule import RepaymentScheduleManager
from ..storage import KeyedLock, StorageInterface, create_storage
from ..users import User, UserManager


class LoanSystem:
    """Loan management system with all components initialized"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 config: Optional[LoanConfig] = None):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)
        self.locks = KeyedLock()

        self.audit_trail = AuditTrail(self.storage)
        self.user_manager = UserManager(self.storage, self.audit_trail)
        self.customer_manager = CustomerManager(self.storage, self.audit_trail)
        self.loan_manager = LoanManager(
            self.storage, self.customer_manager, self.audit_trail, self.locks
        )
        self.schedule_manager = RepaymentScheduleManager(
            self.storage, self.loan_manager, self.audit_trail, self.locks
        )
        self.payment_manager = PaymentManager(
            self.storage, self.loan_manager, self.schedule_manager, self.audit_trail
        )
        self.reporting_engine = ReportingEngine(
            self.customer_manager, self.loan_manager,
            self.schedule_manager, self.payment_manager
        )

        if self.config.seed_default_users:
            self.user_manager.ensure_default_users()

    def close(self) -> None:
        self.storage.close()


# Dependency to get the system attached to the running app
def get_loan_system(request: Request) -> LoanSystem:
    return request.app.state.system


security = HTTPBearer(auto_error=False)


def issue_token(user: User, config: LoanConfig) -> str:
    """Sign a bearer token for an authenticated user"""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user.id,
        "username": user.username,
        "name": user.name,
        "role": user.role.value,
        "iat": now,
        "exp": now + timedelta(hours=config.jwt_expiry_hours),
    }
    return jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)


def get_current_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: LoanSystem = Depends(get_loan_system)
) -> RequestContext:
    """Dependency that validates the bearer token and returns the caller's context"""
    if not credentials:
        raise HTTPException(status_code=401, detail="Access token required")
    try:
        payload = jwt.decode(
            credentials.credentials,
            system.config.jwt_secret,
            algorithms=[system.config.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    user = system.user_manager.get_user(user_id) if user_id else None
    if not user or not user.is_active:
        raise HTTPException(status_code=401, detail="Invalid token")

    # Role is read from the stored user, not the token
    return RequestContext(user_id=user.id, username=user.username, name=user.name, role=user.role)


def require_access(operation: Operation, resource: Resource) -> Callable[..., RequestContext]:
    """Dependency factory for access checks"""
    def check(context: RequestContext = Depends(get_current_context)) -> RequestContext:
        if not allowed(context.role, operation, resource):
            raise HTTPException(status_code=403, detail="Access denied")
        return context
    return check


def require_admin(context: RequestContext = Depends(get_current_context)) -> RequestContext:
    """Dependency for Admin-only operations, including every delete"""
    if not can_delete(context.role):
        raise HTTPException(status_code=403, detail="Access denied. Admin only.")
    return context
