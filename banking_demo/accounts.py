"""
Account Management Module

Each user owns exactly one debit account, created at signup. Accounts carry
the human-facing account number used as the counterparty label on ledger
entries and are otherwise immutable until deleted with their owner.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Optional
import secrets
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .ledger import AccountLedger
from .investments import InvestmentRepository
from .cards import CardManager
from .errors import AccountNotFoundError, persistence_errors
from .query import parse_timestamp
from .logging_config import get_logger, log_action


ACCOUNTS_TABLE = "accounts"


@dataclass
class Account(StorageRecord):
    """A user's bank account"""
    user_id: str
    account_number: str
    account_type: str = "Debit"


class AccountManager:
    """
    Create, look up and delete accounts
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        ledger: AccountLedger,
        investments: InvestmentRepository,
        cards: Optional[CardManager] = None
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.ledger = ledger
        self.investments = investments
        self.cards = cards
        self.table_name = ACCOUNTS_TABLE
        self.logger = get_logger("banking_demo.accounts")

    def create_account(self, user_id: str, account_type: str = "Debit") -> Account:
        """
        Create an account with a freshly generated unique number

        Args:
            user_id: Owning user
            account_type: Display type of the account

        Returns:
            Created Account object
        """
        now = datetime.now(timezone.utc)
        account = Account(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            user_id=user_id,
            account_number=self._generate_account_number(),
            account_type=account_type
        )

        with persistence_errors("save account"):
            self.storage.save(self.table_name, account.id, account.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account.id,
            account_id=account.id,
            metadata={"user_id": user_id, "account_number": account.account_number}
        )
        log_action(
            self.logger, "info", "Account created",
            account_id=account.id, action="create_account", resource=account.account_number
        )
        return account

    def get_account(self, account_id: str) -> Optional[Account]:
        with persistence_errors("load account"):
            data = self.storage.load(self.table_name, account_id)
        return account_from_dict(data) if data else None

    def require_account(self, account_id: str) -> Account:
        """Load an account or raise AccountNotFoundError"""
        account = self.get_account(account_id)
        if not account:
            raise AccountNotFoundError()
        return account

    def get_account_by_number(self, account_number: str) -> Optional[Account]:
        with persistence_errors("load account"):
            records = self.storage.find(self.table_name, {"account_number": account_number})
        return account_from_dict(records[0]) if records else None

    def get_user_accounts(self, user_id: str) -> List[Account]:
        with persistence_errors("load accounts"):
            records = self.storage.find(self.table_name, {"user_id": user_id})
        return [account_from_dict(data) for data in records]

    def get_summary(self, account_id: str, recent_limit: int = 10) -> Dict:
        """Account details plus its most recent ledger entries"""
        account = self.require_account(account_id)
        return {
            "account": account,
            "recent_entries": self.ledger.get_recent_entries(account_id, recent_limit)
        }

    def delete_account(self, account_id: str) -> Account:
        """Delete an account together with its investments, cards and ledger entries"""
        account = self.require_account(account_id)

        with self.storage.atomic():
            removed_investments = self.investments.delete_by_account(account_id)
            removed_entries = self.ledger.delete_account_entries(account_id)
            removed_cards = self.cards.delete_account_cards(account_id) if self.cards else 0
            with persistence_errors("delete account"):
                self.storage.delete(self.table_name, account_id)

            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_DELETED,
                entity_type="account",
                entity_id=account_id,
                account_id=account_id,
                metadata={
                    "account_number": account.account_number,
                    "investments_removed": removed_investments,
                    "entries_removed": removed_entries,
                    "cards_removed": removed_cards
                }
            )

        log_action(
            self.logger, "info", "Account deleted",
            account_id=account_id, action="delete_account",
            extra={
                "investments_removed": removed_investments,
                "entries_removed": removed_entries,
                "cards_removed": removed_cards
            }
        )
        return account

    def _generate_account_number(self) -> str:
        """Random six digit number, retried until unused"""
        while True:
            candidate = f"AC-{secrets.randbelow(1_000_000):06d}"
            if not self.get_account_by_number(candidate):
                return candidate


def account_from_dict(data: Dict) -> Account:
    return Account(
        id=data['id'],
        created_at=parse_timestamp(data['created_at']),
        updated_at=parse_timestamp(data['updated_at']),
        user_id=data['user_id'],
        account_number=data['account_number'],
        account_type=data.get('account_type', "Debit")
    )
