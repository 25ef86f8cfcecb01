"""
Card Management Module

Payment cards issued against an account. Every read and write is scoped to
the owning account; a card of another account is reported as access denied.
"""

import re
import uuid
from datetime import date, datetime, time, timezone
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .errors import AccessDeniedError, CardNotFoundError, ValidationError, persistence_errors
from .query import parse_timestamp
from .logging_config import get_logger, log_action


CARDS_TABLE = "cards"

CARD_NUMBER_PATTERN = re.compile(r"^\d{13,19}$")
CVC_PATTERN = re.compile(r"^\d{3,4}$")

UPDATABLE_FIELDS = {"card_type", "number", "due_date", "functions", "cvc", "name", "payment_date"}


class CardType(Enum):
    CREDIT = "credit"
    DEBIT = "debit"
    BOTH = "both"


@dataclass
class Card(StorageRecord):
    """A payment card linked to one account"""
    account_id: str
    card_type: CardType
    number: str
    due_date: datetime
    functions: str
    cvc: str
    name: str
    payment_date: Optional[datetime] = None
    is_blocked: bool = False

    @property
    def masked_number(self) -> str:
        return "*" * (len(self.number) - 4) + self.number[-4:]


def parse_card_date(value: Any, label: str) -> datetime:
    """Accept a datetime, a date or an ISO string. Bare dates mean midnight UTC."""
    if isinstance(value, str):
        value = value.strip()
        try:
            value = date.fromisoformat(value)
        except ValueError:
            pass
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    try:
        parsed = parse_timestamp(value)
    except (TypeError, ValueError):
        parsed = None
    if parsed is None:
        raise ValidationError(f"{label} must be a valid date")
    return parsed


class CardManager:
    """
    Issue, update, block and delete cards of an account
    """

    def __init__(self, storage: StorageInterface, audit_trail: AuditTrail):
        self.storage = storage
        self.audit_trail = audit_trail
        self.table_name = CARDS_TABLE
        self.logger = get_logger("banking_demo.cards")

    def create_card(
        self,
        account_id: str,
        card_type: str,
        number: str,
        due_date: Any,
        functions: str,
        cvc: str,
        name: str,
        payment_date: Any = None
    ) -> Card:
        """
        Issue a card for an account. New cards are never blocked.

        Args:
            account_id: Owning account
            card_type: credit, debit or both
            number: 13 to 19 digits, spaces ignored
            due_date: Expiry date
            functions: Comma separated card functions, e.g. "credit,debit"
            cvc: 3 or 4 digit security code
            name: Cardholder name
            payment_date: Optional bill payment date

        Returns:
            Created Card object
        """
        now = datetime.now(timezone.utc)
        card = Card(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            account_id=account_id,
            card_type=self._parse_type(card_type),
            number=self._parse_number(number),
            due_date=parse_card_date(due_date, "Due date"),
            functions=self._require_text(functions, "Card functions are required"),
            cvc=self._parse_cvc(cvc),
            name=self._require_text(name, "Cardholder name is required"),
            payment_date=parse_card_date(payment_date, "Payment date") if payment_date else None
        )

        self._save(card, "save card")
        self.audit_trail.log_event(
            event_type=AuditEventType.CARD_CREATED,
            entity_type="card",
            entity_id=card.id,
            account_id=account_id,
            metadata={"card_type": card.card_type, "last_digits": card.number[-4:]}
        )
        log_action(
            self.logger, "info", "Card created",
            account_id=account_id, action="create_card", resource=card.id
        )
        return card

    def get_card(self, card_id: str, account_id: str) -> Card:
        """Load a card owned by the account"""
        with persistence_errors("load card"):
            data = self.storage.load(self.table_name, card_id)
        if not data:
            raise CardNotFoundError()
        card = card_from_dict(data)
        if card.account_id != account_id:
            log_action(
                self.logger, "warning", "Card access denied",
                account_id=account_id, action="access_card", resource=card_id
            )
            raise AccessDeniedError()
        return card

    def list_cards(self, account_id: str) -> List[Card]:
        with persistence_errors("load cards"):
            records = self.storage.find(self.table_name, {"account_id": account_id})
        cards = [card_from_dict(data) for data in records]
        cards.sort(key=lambda c: c.created_at)
        return cards

    def update_card(self, card_id: str, account_id: str, changes: Dict[str, Any]) -> Card:
        """Apply a partial update. Owner and block status are not changed here."""
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {', '.join(sorted(unknown))}")

        card = self.get_card(card_id, account_id)

        for key, value in changes.items():
            if key == "card_type":
                card.card_type = self._parse_type(value)
            elif key == "number":
                card.number = self._parse_number(value)
            elif key == "due_date":
                card.due_date = parse_card_date(value, "Due date")
            elif key == "functions":
                card.functions = self._require_text(value, "Card functions are required")
            elif key == "cvc":
                card.cvc = self._parse_cvc(value)
            elif key == "name":
                card.name = self._require_text(value, "Cardholder name is required")
            elif key == "payment_date":
                card.payment_date = parse_card_date(value, "Payment date") if value else None
        card.updated_at = datetime.now(timezone.utc)

        self._save(card, "update card")
        self.audit_trail.log_event(
            event_type=AuditEventType.CARD_UPDATED,
            entity_type="card",
            entity_id=card.id,
            account_id=account_id,
            metadata={"changed_fields": sorted(changes)}
        )
        return card

    def set_blocked(self, card_id: str, account_id: str, is_blocked: bool) -> Card:
        """Block or unblock a card"""
        if not isinstance(is_blocked, bool):
            raise ValidationError("is_blocked must be true or false")

        card = self.get_card(card_id, account_id)
        card.is_blocked = is_blocked
        card.updated_at = datetime.now(timezone.utc)

        self._save(card, "update card")
        self.audit_trail.log_event(
            event_type=AuditEventType.CARD_BLOCK_CHANGED,
            entity_type="card",
            entity_id=card.id,
            account_id=account_id,
            metadata={"is_blocked": is_blocked}
        )
        log_action(
            self.logger, "info", "Card blocked" if is_blocked else "Card unblocked",
            account_id=account_id, action="toggle_card_block", resource=card.id
        )
        return card

    def delete_card(self, card_id: str, account_id: str) -> Card:
        card = self.get_card(card_id, account_id)
        with persistence_errors("delete card"):
            self.storage.delete(self.table_name, card_id)

        self.audit_trail.log_event(
            event_type=AuditEventType.CARD_DELETED,
            entity_type="card",
            entity_id=card_id,
            account_id=account_id,
            metadata={"last_digits": card.number[-4:]}
        )
        return card

    def delete_account_cards(self, account_id: str) -> int:
        """Remove every card of an account. Returns the number removed."""
        with persistence_errors("delete cards"):
            records = self.storage.find(self.table_name, {"account_id": account_id})
            for data in records:
                self.storage.delete(self.table_name, data["id"])
        return len(records)

    def _save(self, card: Card, action: str) -> None:
        with persistence_errors(action):
            self.storage.save(self.table_name, card.id, card.to_dict())

    def _parse_type(self, value: Any) -> CardType:
        try:
            return CardType(value)
        except ValueError:
            raise ValidationError("Card type must be credit, debit or both")

    def _parse_number(self, value: Any) -> str:
        number = str(value or "").replace(" ", "")
        if not CARD_NUMBER_PATTERN.match(number):
            raise ValidationError("Card number must have 13 to 19 digits")
        return number

    def _parse_cvc(self, value: Any) -> str:
        cvc = str(value or "").strip()
        if not CVC_PATTERN.match(cvc):
            raise ValidationError("CVC must have 3 or 4 digits")
        return cvc

    def _require_text(self, value: Any, message: str) -> str:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(message)
        return value.strip()


def card_from_dict(data: Dict[str, Any]) -> Card:
    return Card(
        id=data['id'],
        created_at=parse_timestamp(data['created_at']),
        updated_at=parse_timestamp(data['updated_at']),
        account_id=data['account_id'],
        card_type=CardType(data['card_type']),
        number=data['number'],
        due_date=parse_timestamp(data['due_date']),
        functions=data['functions'],
        cvc=data['cvc'],
        name=data['name'],
        payment_date=parse_timestamp(data.get('payment_date')),
        is_blocked=bool(data.get('is_blocked', False))
    )
