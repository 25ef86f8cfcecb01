"""
Account Ledger Module

Ledger entries are the account's transaction records: signed amounts where
negative means money leaving the account. The investment subsystem appends
entries through ``record``; the generic transaction CRUD path goes through
``create_entry``/``update_entry``/``delete_entry`` and normalizes signs by
entry type.
"""

from decimal import Decimal
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import uuid

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .errors import (
    AccessDeniedError, LedgerEntryNotFoundError, ValidationError, persistence_errors
)
from .query import parse_timestamp
from .logging_config import get_logger, log_action


LEDGER_TABLE = "ledger_entries"

INVESTMENT_TRANSFER = "investment-transfer"
INVESTMENT_REDEMPTION = "investment-redemption"

# Entry types whose amount is always an outflow / always an inflow
OUTFLOW_TYPES = {"transfer"}
INFLOW_TYPES = {"exchange", "loan"}

UPDATABLE_FIELDS = {"entry_type", "amount", "from_label", "to_label", "description", "attachment", "date"}


@dataclass
class LedgerEntry(StorageRecord):
    """
    One money movement into or out of an account
    """
    account_id: str
    entry_type: str
    amount: Decimal
    date: datetime
    from_label: Optional[str] = None
    to_label: Optional[str] = None
    description: Optional[str] = None
    attachment: Optional[str] = None

    @property
    def is_outflow(self) -> bool:
        return self.amount < 0


def normalize_amount(entry_type: str, amount: Decimal) -> Decimal:
    """Force the sign implied by the entry type"""
    if entry_type in OUTFLOW_TYPES and amount > 0:
        return -amount
    if entry_type in INFLOW_TYPES and amount < 0:
        return -amount
    return amount


class AccountLedger:
    """
    Append and maintain ledger entries for accounts
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail,
                 max_description_length: int = 255):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = LEDGER_TABLE
        self.max_description_length = max_description_length
        self.logger = get_logger("banking_demo.ledger")

    def record(
        self,
        account_id: str,
        entry_type: str,
        amount: Decimal,
        from_label: Optional[str] = None,
        to_label: Optional[str] = None,
        description: Optional[str] = None,
        attachment: Optional[str] = None,
        date: Optional[datetime] = None
    ) -> LedgerEntry:
        """
        Append an entry exactly as given. Used when the caller already knows
        the direction of the money flow.
        """
        now = datetime.now(timezone.utc)
        entry = LedgerEntry(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            account_id=account_id,
            entry_type=entry_type,
            amount=amount,
            date=date or now,
            from_label=from_label,
            to_label=to_label,
            description=description,
            attachment=attachment
        )

        with persistence_errors("save ledger entry"):
            self.storage.save(self.table_name, entry.id, entry.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.LEDGER_ENTRY_CREATED,
            entity_type="ledger_entry",
            entity_id=entry.id,
            account_id=account_id,
            metadata={
                "entry_type": entry_type,
                "amount": amount,
                "from": from_label,
                "to": to_label
            }
        )
        return entry

    def create_entry(
        self,
        account_id: str,
        entry_type: str,
        amount: Decimal,
        from_label: Optional[str] = None,
        to_label: Optional[str] = None,
        description: Optional[str] = None,
        attachment: Optional[str] = None,
        date: Optional[datetime] = None
    ) -> LedgerEntry:
        """Create a transaction through the generic path, normalizing its sign"""
        if not entry_type or not entry_type.strip():
            raise ValidationError("Transaction type is required")
        if amount is None:
            raise ValidationError("Transaction amount is required")
        self._validate_description(description)

        entry = self.record(
            account_id=account_id,
            entry_type=entry_type,
            amount=normalize_amount(entry_type, amount),
            from_label=from_label,
            to_label=to_label,
            description=description,
            attachment=attachment,
            date=date
        )
        log_action(
            self.logger, "info", "Transaction created",
            account_id=account_id, action="create_transaction", resource=entry.id
        )
        return entry

    def get_entry(self, entry_id: str, account_id: str) -> LedgerEntry:
        """Load an entry owned by the account"""
        with persistence_errors("load ledger entry"):
            data = self.storage.load(self.table_name, entry_id)
        if not data:
            raise LedgerEntryNotFoundError()
        entry = entry_from_dict(data)
        if entry.account_id != account_id:
            raise AccessDeniedError()
        return entry

    def update_entry(self, entry_id: str, account_id: str, changes: Dict[str, Any]) -> LedgerEntry:
        """
        Apply a partial update. When both type and amount are present the
        amount is normalized for the new type.
        """
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        entry = self.get_entry(entry_id, account_id)

        if "entry_type" in changes and not (changes["entry_type"] or "").strip():
            raise ValidationError("Transaction type is required")
        if "amount" in changes and changes["amount"] is None:
            raise ValidationError("Transaction amount is required")
        if "date" in changes and changes["date"] is None:
            raise ValidationError("Transaction date is required")
        if "description" in changes:
            self._validate_description(changes["description"])

        if changes.get("entry_type") and changes.get("amount") is not None:
            changes = dict(changes)
            changes["amount"] = normalize_amount(changes["entry_type"], changes["amount"])

        for key, value in changes.items():
            setattr(entry, key, value)
        entry.updated_at = datetime.now(timezone.utc)

        with persistence_errors("update ledger entry"):
            self.storage.save(self.table_name, entry.id, entry.to_dict())

        self.audit_trail.log_event(
            event_type=AuditEventType.LEDGER_ENTRY_UPDATED,
            entity_type="ledger_entry",
            entity_id=entry.id,
            account_id=account_id,
            metadata={"changed_fields": sorted(changes)}
        )
        return entry

    def delete_entry(self, entry_id: str, account_id: str) -> LedgerEntry:
        entry = self.get_entry(entry_id, account_id)
        with persistence_errors("delete ledger entry"):
            self.storage.delete(self.table_name, entry_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.LEDGER_ENTRY_DELETED,
            entity_type="ledger_entry",
            entity_id=entry_id,
            account_id=account_id,
            metadata={"amount": entry.amount, "entry_type": entry.entry_type}
        )
        return entry

    def get_recent_entries(self, account_id: str, limit: int = 10) -> List[LedgerEntry]:
        """Most recent entries of an account, newest first"""
        with persistence_errors("load ledger entries"):
            records = self.storage.find(self.table_name, {"account_id": account_id})
        entries = [entry_from_dict(data) for data in records]
        entries.sort(key=lambda e: e.date, reverse=True)
        return entries[:limit]

    def delete_account_entries(self, account_id: str) -> int:
        """Remove every entry of an account. Returns the number removed."""
        with persistence_errors("delete ledger entries"):
            records = self.storage.find(self.table_name, {"account_id": account_id})
            for data in records:
                self.storage.delete(self.table_name, data["id"])
        return len(records)

    def _validate_description(self, description: Optional[str]) -> None:
        if description and len(description) > self.max_description_length:
            raise ValidationError(
                f"Description must be at most {self.max_description_length} characters"
            )



def entry_from_dict(data: Dict[str, Any]) -> LedgerEntry:
    """Rebuild a LedgerEntry from its stored document"""
    return LedgerEntry(
        id=data['id'],
        created_at=parse_timestamp(data['created_at']),
        updated_at=parse_timestamp(data['updated_at']),
        account_id=data['account_id'],
        entry_type=data['entry_type'],
        amount=Decimal(data['amount']),
        date=parse_timestamp(data['date']),
        from_label=data.get('from_label'),
        to_label=data.get('to_label'),
        description=data.get('description'),
        attachment=data.get('attachment')
    )
