"""
System wiring and authentication dependencies
"""

from dataclasses import dataclass
from datetime import datetime, timezone, timedelta
from decimal import Decimal
from typing import Optional, Tuple

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from ..storage import StorageInterface, create_storage
from ..audit import AuditTrail
from ..ledger import AccountLedger
from ..cards import CardManager
from ..investments import InvestmentRepository
from ..accounts import AccountManager
from ..users import UserManager
from ..investment_operations import InvestmentOperations
from ..statements import StatementEngine
from ..config import BankingDemoConfig, get_config


class BankingSystem:
    """Banking demo backend with all components initialized"""

    def __init__(self, storage: Optional[StorageInterface] = None,
                 config: Optional[BankingDemoConfig] = None):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.database_url)

        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.ledger = AccountLedger(
            self.storage, self.audit_trail,
            max_description_length=self.config.max_description_length
        )
        self.investment_repository = InvestmentRepository(self.storage)
        self.card_manager = CardManager(self.storage, self.audit_trail)
        self.account_manager = AccountManager(
            self.storage, self.audit_trail, self.ledger, self.investment_repository,
            cards=self.card_manager
        )
        self.user_manager = UserManager(
            self.storage, self.audit_trail, self.account_manager,
            password_min_length=self.config.password_min_length
        )
        self.investment_operations = InvestmentOperations(
            self.storage, self.investment_repository, self.ledger,
            self.account_manager, self.audit_trail,
            max_transfer=Decimal(self.config.max_investment_transfer),
            max_description_length=self.config.max_description_length,
            maturity_warning_days=self.config.maturity_warning_days
        )
        self.statement_engine = StatementEngine(
            self.storage,
            default_limit=self.config.statement_default_limit,
            max_limit=self.config.statement_max_limit
        )


# Global banking system instance, built on first use
banking_system: Optional[BankingSystem] = None


def get_banking_system() -> BankingSystem:
    global banking_system
    if banking_system is None:
        banking_system = BankingSystem()
    return banking_system


# JWT Security
security = HTTPBearer(auto_error=False)


@dataclass
class Identity:
    """Caller resolved from the bearer token"""
    account_id: str
    user_id: Optional[str] = None


def create_access_token(user_id: str, account_id: str,
                        config: BankingDemoConfig) -> Tuple[str, datetime]:
    """Issue a signed token for a user and their account"""
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(hours=config.jwt_expiry_hours)
    payload = {
        "sub": user_id,
        "account_id": account_id,
        "iat": now,
        "exp": expires_at
    }
    token = jwt.encode(payload, config.jwt_secret, algorithm=config.jwt_algorithm)
    return token, expires_at


def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    system: BankingSystem = Depends(get_banking_system)
) -> Identity:
    """Dependency that validates the JWT and returns the caller"""
    config = system.config
    if not config.auth_enabled:
        if not config.test_account_id:
            raise HTTPException(status_code=401, detail="Not authenticated")
        account = system.account_manager.get_account(config.test_account_id)
        return Identity(
            account_id=config.test_account_id,
            user_id=account.user_id if account else None
        )

    if not credentials:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = jwt.decode(
            credentials.credentials, config.jwt_secret, algorithms=[config.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid token")

    account_id = payload.get("account_id")
    if not payload.get("sub") or not account_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return Identity(account_id=account_id, user_id=payload["sub"])


def get_current_account(identity: Identity = Depends(get_current_identity)) -> str:
    """Account id of the authenticated caller"""
    return identity.account_id
