"""
User Management Module

System users, salted password hashing and authentication.
"""

import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .access import Role
from .audit import AuditEventType, AuditTrail
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord, RecordNotFound


logger = get_logger(__name__)


class UserStatus(Enum):
    """User account status"""
    ACTIVE = "Active"
    DISABLED = "Disabled"


# Accounts provisioned on first start when no users exist
DEFAULT_USERS = (
    ("Administrator", "Admin", "Admin123", Role.ADMIN),
    ("Loan Officer", "Loans", "Loans123", Role.LOAN_OFFICER),
    ("Cashier", "Cashier", "Cashier123", Role.CASHIER),
)


@dataclass
class User(StorageRecord):
    """System user; the password is only ever stored as a salted hash"""
    name: str
    username: str
    role: Role
    status: UserStatus = UserStatus.ACTIVE
    password_hash: Optional[str] = None
    password_salt: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE

    def to_public_dict(self) -> Dict[str, Any]:
        """Dictionary without credential fields"""
        data = self.to_dict()
        data.pop('password_hash', None)
        data.pop('password_salt', None)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        data = cls.parse_timestamps(data)
        data['role'] = Role(data['role'])
        data['status'] = UserStatus(data['status'])
        return cls(**data)


class AuthenticationError(ValueError):
    """Raised when credentials are rejected"""


class UserManager:
    """Manages users and authenticates them"""

    TABLE = 'users'

    def __init__(self, storage: StorageInterface, audit: Optional[AuditTrail] = None):
        self.storage = storage
        self.audit = audit

    def create_user(self, name: str, username: str, password: str, role: Role,
                    status: UserStatus = UserStatus.ACTIVE,
                    created_by: Optional[str] = None) -> User:
        """Create a new user with a unique username"""
        name = (name or "").strip()
        username = (username or "").strip()
        if not name or not username or not password:
            raise ValueError("Name, username and password are required")
        if self.get_user_by_username(username):
            raise ValueError("Username already exists")

        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name,
            username=username,
            role=Role(role),
            status=UserStatus(status)
        )
        self._set_password(user, password)
        self.storage.save(self.TABLE, user.id, user.to_dict())

        if self.audit:
            self.audit.log_event(
                AuditEventType.USER_CREATED,
                'user',
                user.id,
                {'username': username, 'role': user.role},
                created_by
            )
        log_action(logger, "info", "User created", user_id=created_by,
                   action="create", resource="User", entity_id=user.id,
                   extra={'username': username, 'role': user.role.value})
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        """Get user by ID"""
        data = self.storage.load(self.TABLE, user_id)
        if not data:
            return None
        return User.from_dict(data)

    def get_user_by_username(self, username: str) -> Optional[User]:
        """Get user by username"""
        users = self.storage.find(self.TABLE, {'username': username})
        if not users:
            return None
        return User.from_dict(users[0])

    def list_users(self) -> List[User]:
        """List users, newest first"""
        users = [User.from_dict(data) for data in self.storage.load_all(self.TABLE)]
        return sorted(users, key=lambda u: u.created_at, reverse=True)

    def update_user(self, user_id: str, name: Optional[str] = None,
                    username: Optional[str] = None, role: Optional[Role] = None,
                    status: Optional[UserStatus] = None, password: Optional[str] = None,
                    updated_by: Optional[str] = None) -> User:
        """Update user properties; the password is only changed when given"""
        user = self.get_user(user_id)
        if not user:
            raise RecordNotFound(f"User {user_id} not found")

        if username is not None and username != user.username:
            username = username.strip()
            if not username:
                raise ValueError("Username cannot be empty")
            existing = self.get_user_by_username(username)
            if existing and existing.id != user_id:
                raise ValueError("Username already exists")
            user.username = username
        if name is not None:
            if not name.strip():
                raise ValueError("Name cannot be empty")
            user.name = name.strip()
        if role is not None:
            user.role = Role(role)
        if status is not None:
            user.status = UserStatus(status)
        if password:
            self._set_password(user, password)

        user.updated_at = datetime.now(timezone.utc)
        self.storage.save(self.TABLE, user.id, user.to_dict())

        if self.audit:
            self.audit.log_event(
                AuditEventType.USER_UPDATED,
                'user',
                user.id,
                {'username': user.username, 'role': user.role,
                 'status': user.status, 'password_changed': bool(password)},
                updated_by
            )
        log_action(logger, "info", "User updated", user_id=updated_by,
                   action="edit", resource="User", entity_id=user.id)
        return user

    def delete_user(self, user_id: str, deleted_by: Optional[str] = None) -> bool:
        """Delete a user; returns False when the user does not exist"""
        user = self.get_user(user_id)
        if not user:
            return False

        self.storage.delete(self.TABLE, user_id)
        if self.audit:
            self.audit.log_event(
                AuditEventType.USER_DELETED,
                'user',
                user_id,
                {'username': user.username},
                deleted_by
            )
        log_action(logger, "info", "User deleted", user_id=deleted_by,
                   action="delete", resource="User", entity_id=user_id)
        return True

    def authenticate(self, username: str, password: str) -> User:
        """Authenticate an active user, raising AuthenticationError on failure"""
        user = self.get_user_by_username(username)

        if not user or not user.is_active or not self._verify_password(user, password):
            reason = ('user_not_found' if not user
                      else 'user_disabled' if not user.is_active
                      else 'invalid_password')
            if self.audit:
                self.audit.log_event(
                    AuditEventType.LOGIN_FAILED,
                    'user',
                    user.id if user else username,
                    {'username': username, 'reason': reason}
                )
            log_action(logger, "warning", "Login failed", action="login",
                       resource="User", extra={'username': username, 'reason': reason})
            raise AuthenticationError("Invalid credentials or inactive account")

        if self.audit:
            self.audit.log_event(
                AuditEventType.LOGIN_SUCCESS,
                'user',
                user.id,
                {'username': username},
                user.id
            )
        log_action(logger, "info", "Login succeeded", user_id=user.id,
                   action="login", resource="User")
        return user

    def ensure_default_users(self) -> int:
        """Provision the default accounts when no users exist; returns how many were created"""
        if self.storage.count(self.TABLE) > 0:
            return 0
        for name, username, password, role in DEFAULT_USERS:
            self.create_user(name, username, password, role, created_by='system')
        logger.info("Default users provisioned")
        return len(DEFAULT_USERS)

    def _generate_salt(self) -> str:
        """Generate random salt for password hashing"""
        return secrets.token_hex(16)

    def _hash_password(self, password: str, salt: str) -> str:
        """Hash password with salt using scrypt"""
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _set_password(self, user: User, password: str) -> None:
        user.password_salt = self._generate_salt()
        user.password_hash = self._hash_password(password, user.password_salt)

    def _verify_password(self, user: User, password: str) -> bool:
        if not user.password_hash or not user.password_salt or not password:
            return False
        expected = self._hash_password(password, user.password_salt)
        return secrets.compare_digest(user.password_hash, expected)
