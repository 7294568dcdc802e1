"""
Access Control Module

Role-based decision table gating every operation on every resource, plus the
per-request caller context handed to request handlers.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Type, TypeVar


class _LabelEnum(Enum):
    """Enum that also resolves labels case-insensitively, ignoring spaces and underscores"""

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            wanted = _normalize(value)
            for member in cls:
                if _normalize(member.value) == wanted or _normalize(member.name) == wanted:
                    return member
        return None


def _normalize(label: str) -> str:
    return label.replace(" ", "").replace("_", "").replace("-", "").lower()


class Role(_LabelEnum):
    """User roles"""
    ADMIN = "Admin"
    LOAN_OFFICER = "Loan Officer"
    CASHIER = "Cashier"


class Operation(_LabelEnum):
    """Operations a caller may attempt"""
    CREATE = "create"
    VIEW = "view"
    EDIT = "edit"
    DELETE = "delete"


class Resource(_LabelEnum):
    """Protected resources"""
    CUSTOMER = "Customer"
    LOAN = "Loan"
    REPAYMENT = "Repayment"
    PAYMENT = "Payment"
    USER = "User"
    REPORT = "Report"


_CVE = frozenset({Operation.CREATE, Operation.VIEW, Operation.EDIT})
_VIEW = frozenset({Operation.VIEW})
_NONE: FrozenSet[Operation] = frozenset()


# Delete is never listed here; it is Admin-only and checked with can_delete().
ACCESS_TABLE: Dict[Role, Dict[Resource, FrozenSet[Operation]]] = {
    Role.LOAN_OFFICER: {
        Resource.CUSTOMER: _CVE,
        Resource.LOAN: _CVE,
        Resource.REPAYMENT: _VIEW,
        Resource.PAYMENT: _VIEW,
        Resource.USER: _NONE,
        Resource.REPORT: _VIEW,
    },
    Role.CASHIER: {
        Resource.CUSTOMER: _VIEW,
        Resource.LOAN: _VIEW,
        Resource.REPAYMENT: _VIEW,
        Resource.PAYMENT: _CVE,
        Resource.USER: _NONE,
        Resource.REPORT: _VIEW,
    },
}


E = TypeVar("E", bound=Enum)


def _coerce(enum_cls: Type[E], value: Any) -> Optional[E]:
    """Resolve a value to an enum member, or None when it is outside the enum"""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except (ValueError, TypeError):
        return None


def allowed(role: Any, operation: Any, resource: Any) -> bool:
    """
    Decide whether a role may perform an operation on a resource.

    Admin is always allowed. Any role, operation or resource outside the
    declared enums is denied. Never raises.
    """
    role_ = _coerce(Role, role)
    operation_ = _coerce(Operation, operation)
    resource_ = _coerce(Resource, resource)
    if role_ is None or operation_ is None or resource_ is None:
        return False

    if role_ is Role.ADMIN:
        return True

    return operation_ in ACCESS_TABLE.get(role_, {}).get(resource_, _NONE)


def can_delete(role: Any) -> bool:
    """Deletes, on any resource, are reserved to Admin"""
    return _coerce(Role, role) is Role.ADMIN


@dataclass(frozen=True)
class RequestContext:
    """Authenticated caller for a single request"""
    user_id: str
    username: str
    name: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def can(self, operation: Any, resource: Any) -> bool:
        """Check access for this caller"""
        return allowed(self.role, operation, resource)
