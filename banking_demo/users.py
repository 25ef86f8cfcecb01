"""
User Management Module

Signup, credential checks, profile and preference updates and account
lifecycle for end users. Passwords are hashed with scrypt and a per-user
salt; only the hash and salt are stored.
"""

import hashlib
import hmac
import re
import secrets
import uuid
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .accounts import Account, AccountManager
from .errors import AuthenticationError, UserNotFoundError, ValidationError, persistence_errors
from .query import parse_timestamp
from .logging_config import get_logger, log_action


USERS_TABLE = "users"

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

PROFILE_FIELDS = {"name", "username", "email"}

# Allowed preference keys with their defaults
DEFAULT_SETTINGS: Dict[str, Any] = {
    "notifications": True,
    "language": "pt-BR",
    "currency": "BRL",
    "two_factor_auth": False,
    "email_alerts": True,
    "sms_alerts": False,
    "theme": "light",
}


@dataclass
class User(StorageRecord):
    """Application user. Owns exactly one account."""
    name: str
    username: str
    email: str
    password_hash: Optional[str] = None
    password_salt: Optional[str] = None
    settings: Dict[str, Any] = field(default_factory=dict)


class UserManager:
    """
    Create, authenticate, update and delete users
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        account_manager: AccountManager,
        password_min_length: int = 6
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.account_manager = account_manager
        self.password_min_length = password_min_length
        self.table_name = USERS_TABLE
        self.logger = get_logger("banking_demo.users")

    def create_user(self, name: str, username: str, email: str, password: str) -> Tuple[User, Account]:
        """
        Register a user and open their account

        Args:
            name: Display name
            username: Login handle
            email: Unique email address
            password: Plain text password, hashed before storage

        Returns:
            Tuple of the created User and its Account
        """
        if not name or not name.strip():
            raise ValidationError("Name is required")
        if not username or not username.strip():
            raise ValidationError("Username is required")
        if not email or not EMAIL_PATTERN.match(email):
            raise ValidationError("A valid email is required")
        self._validate_password(password)

        email = email.strip().lower()
        if self.get_user_by_email(email):
            raise ValidationError("Email already registered")

        now = datetime.now(timezone.utc)
        user = User(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name.strip(),
            username=username.strip(),
            email=email,
            settings=dict(DEFAULT_SETTINGS)
        )
        self._set_password(user, password)

        with self.storage.atomic():
            self._save_user(user)
            account = self.account_manager.create_account(user.id)
            self.audit_trail.log_event(
                event_type=AuditEventType.USER_CREATED,
                entity_type="user",
                entity_id=user.id,
                account_id=account.id,
                metadata={"username": user.username, "email": user.email}
            )

        log_action(
            self.logger, "info", "User created",
            account_id=account.id, action="create_user", resource=user.id
        )
        return user, account

    def authenticate(self, email: str, password: str) -> Tuple[User, Account]:
        """Check credentials. Unknown email and wrong password fail identically."""
        user = self.get_user_by_email((email or "").strip().lower())

        if not user or not self._verify_password(user, password or ""):
            self.audit_trail.log_event(
                event_type=AuditEventType.LOGIN_FAILED,
                entity_type="user",
                entity_id=user.id if user else (email or ""),
                metadata={"reason": "invalid_credentials"}
            )
            log_action(self.logger, "warning", "Login failed", action="authenticate")
            raise AuthenticationError("Invalid credentials")

        accounts = self.account_manager.get_user_accounts(user.id)
        if not accounts:
            raise AuthenticationError("User has no account")
        account = accounts[0]

        self.audit_trail.log_event(
            event_type=AuditEventType.LOGIN_SUCCESS,
            entity_type="user",
            entity_id=user.id,
            account_id=account.id
        )
        return user, account

    def get_user(self, user_id: str) -> Optional[User]:
        with persistence_errors("load user"):
            data = self.storage.load(self.table_name, user_id)
        return user_from_dict(data) if data else None

    def require_user(self, user_id: str) -> User:
        user = self.get_user(user_id)
        if not user:
            raise UserNotFoundError()
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        with persistence_errors("load user"):
            records = self.storage.find(self.table_name, {"email": email})
        return user_from_dict(records[0]) if records else None

    def change_password(self, user_id: str, old_password: str, new_password: str) -> User:
        user = self.require_user(user_id)
        if not self._verify_password(user, old_password or ""):
            raise AuthenticationError("Current password is incorrect")
        self._validate_password(new_password)
        if old_password == new_password:
            raise ValidationError("New password must differ from the current one")

        user.password_salt = None
        self._set_password(user, new_password)
        user.updated_at = datetime.now(timezone.utc)
        self._save_user(user)

        self.audit_trail.log_event(
            event_type=AuditEventType.PASSWORD_CHANGED,
            entity_type="user",
            entity_id=user.id
        )
        return user

    def update_user(self, user_id: str, changes: Dict[str, Any]) -> User:
        """
        Update profile fields. Only name, username and email can change; the
        email keeps the signup rules (valid, lowercased, unique).
        """
        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")
        if not changes:
            raise ValidationError("No fields to update")

        user = self.require_user(user_id)

        if "name" in changes:
            if not changes["name"] or not changes["name"].strip():
                raise ValidationError("Name is required")
            user.name = changes["name"].strip()
        if "username" in changes:
            if not changes["username"] or not changes["username"].strip():
                raise ValidationError("Username is required")
            user.username = changes["username"].strip()
        if "email" in changes:
            email = changes["email"]
            if not email or not EMAIL_PATTERN.match(email):
                raise ValidationError("A valid email is required")
            email = email.strip().lower()
            existing = self.get_user_by_email(email)
            if existing and existing.id != user.id:
                raise ValidationError("Email already registered")
            user.email = email

        user.updated_at = datetime.now(timezone.utc)
        self._save_user(user)

        self.audit_trail.log_event(
            event_type=AuditEventType.USER_UPDATED,
            entity_type="user",
            entity_id=user.id,
            metadata={"changed_fields": sorted(changes)}
        )
        log_action(self.logger, "info", "User updated", action="update_user", resource=user.id)
        return user

    def get_settings(self, user_id: str) -> Dict[str, Any]:
        """Stored preferences over the defaults"""
        user = self.require_user(user_id)
        return {**DEFAULT_SETTINGS, **user.settings}

    def update_settings(self, user_id: str, settings: Dict[str, Any]) -> User:
        """
        Merge preference changes into the user's settings

        Only the keys of DEFAULT_SETTINGS are accepted, each with the type of
        its default. Keys not given keep their current value.
        """
        if not settings:
            raise ValidationError("Settings are required")
        unknown = set(settings) - set(DEFAULT_SETTINGS)
        if unknown:
            raise ValidationError(f"Unknown settings: {', '.join(sorted(unknown))}")
        for key, value in settings.items():
            if isinstance(DEFAULT_SETTINGS[key], bool):
                if not isinstance(value, bool):
                    raise ValidationError(f"Setting '{key}' must be true or false")
            elif not isinstance(value, str) or not value.strip():
                raise ValidationError(f"Setting '{key}' must be a non-empty string")

        user = self.require_user(user_id)
        user.settings = {**DEFAULT_SETTINGS, **user.settings, **settings}
        user.updated_at = datetime.now(timezone.utc)
        self._save_user(user)

        self.audit_trail.log_event(
            event_type=AuditEventType.USER_SETTINGS_UPDATED,
            entity_type="user",
            entity_id=user.id,
            metadata={"settings": settings}
        )
        return user

    def delete_user(self, user_id: str) -> User:
        """Delete a user, their accounts, investments and ledger entries"""
        user = self.require_user(user_id)

        with self.storage.atomic():
            for account in self.account_manager.get_user_accounts(user_id):
                self.account_manager.delete_account(account.id)
            with persistence_errors("delete user"):
                self.storage.delete(self.table_name, user_id)
            self.audit_trail.log_event(
                event_type=AuditEventType.USER_DELETED,
                entity_type="user",
                entity_id=user_id,
                metadata={"email": user.email}
            )

        log_action(self.logger, "info", "User deleted", action="delete_user", resource=user_id)
        return user

    def _validate_password(self, password: str) -> None:
        if not password or len(password) < self.password_min_length:
            raise ValidationError(
                f"Password must be at least {self.password_min_length} characters"
            )

    def _save_user(self, user: User) -> None:
        with persistence_errors("save user"):
            self.storage.save(self.table_name, user.id, user.to_dict())

    def _generate_salt(self) -> str:
        return secrets.token_hex(16)

    def _hash_password(self, password: str, salt: str) -> str:
        return hashlib.scrypt(
            password.encode(),
            salt=salt.encode(),
            n=16384, r=8, p=1
        ).hex()

    def _set_password(self, user: User, password: str) -> None:
        if not user.password_salt:
            user.password_salt = self._generate_salt()
        user.password_hash = self._hash_password(password, user.password_salt)

    def _verify_password(self, user: User, password: str) -> bool:
        if not user.password_hash or not user.password_salt:
            return False
        expected = self._hash_password(password, user.password_salt)
        return hmac.compare_digest(expected, user.password_hash)


def user_from_dict(data: Dict[str, Any]) -> User:
    return User(
        id=data['id'],
        created_at=parse_timestamp(data['created_at']),
        updated_at=parse_timestamp(data['updated_at']),
        name=data['name'],
        username=data['username'],
        email=data['email'],
        password_hash=data.get('password_hash'),
        password_salt=data.get('password_salt'),
        settings=data.get('settings') or {}
    )
