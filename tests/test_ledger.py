"""
Test suite for the account ledger

Tests sign normalization on the generic transaction path, ownership checks
and the raw append used by the investment subsystem.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone, timedelta

from banking_demo.storage import InMemoryStorage
from banking_demo.audit import AuditTrail, AuditEventType
from banking_demo.ledger import AccountLedger, normalize_amount
from banking_demo.errors import AccessDeniedError, LedgerEntryNotFoundError, ValidationError


class TestNormalizeAmount:
    """Sign rules per entry type"""

    def test_transfer_becomes_outflow(self):
        assert normalize_amount("transfer", Decimal("50")) == Decimal("-50")
        assert normalize_amount("transfer", Decimal("-50")) == Decimal("-50")

    def test_exchange_and_loan_become_inflow(self):
        assert normalize_amount("exchange", Decimal("-20")) == Decimal("20")
        assert normalize_amount("loan", Decimal("-300")) == Decimal("300")

    def test_other_types_keep_sign(self):
        assert normalize_amount("deposit", Decimal("-10")) == Decimal("-10")
        assert normalize_amount("investment-transfer", Decimal("10")) == Decimal("10")


class TestAccountLedger:
    """Transaction CRUD"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.audit = AuditTrail(self.storage)
        self.ledger = AccountLedger(self.storage, self.audit, max_description_length=20)

    def test_record_appends_entry_as_given(self):
        entry = self.ledger.record(
            account_id="ACC001",
            entry_type="investment-transfer",
            amount=Decimal("-100.00"),
            from_label="AC-000001",
            to_label="Investment: CDB"
        )
        loaded = self.ledger.get_entry(entry.id, "ACC001")
        assert loaded.amount == Decimal("-100.00")
        assert loaded.is_outflow
        assert loaded.to_label == "Investment: CDB"
        assert self.audit.get_events_by_type(AuditEventType.LEDGER_ENTRY_CREATED)

    def test_create_entry_normalizes_sign(self):
        entry = self.ledger.create_entry("ACC001", "transfer", Decimal("75.00"))
        assert entry.amount == Decimal("-75.00")

    def test_create_entry_requires_type(self):
        with pytest.raises(ValidationError, match="type is required"):
            self.ledger.create_entry("ACC001", " ", Decimal("1"))

    def test_create_entry_rejects_long_description(self):
        with pytest.raises(ValidationError, match="at most 20"):
            self.ledger.create_entry("ACC001", "deposit", Decimal("1"), description="x" * 21)

    def test_get_entry_of_other_account_denied(self):
        entry = self.ledger.create_entry("ACC001", "deposit", Decimal("10"))
        with pytest.raises(AccessDeniedError):
            self.ledger.get_entry(entry.id, "ACC002")

    def test_get_missing_entry(self):
        with pytest.raises(LedgerEntryNotFoundError, match="Transaction not found"):
            self.ledger.get_entry("missing", "ACC001")

    def test_update_normalizes_when_type_and_amount_given(self):
        entry = self.ledger.create_entry("ACC001", "deposit", Decimal("10"))
        updated = self.ledger.update_entry(entry.id, "ACC001", {
            "entry_type": "transfer", "amount": Decimal("40")
        })
        assert updated.amount == Decimal("-40")
        assert self.ledger.get_entry(entry.id, "ACC001").entry_type == "transfer"

    def test_update_description_only(self):
        entry = self.ledger.create_entry("ACC001", "deposit", Decimal("10"))
        updated = self.ledger.update_entry(entry.id, "ACC001", {"description": "rent"})
        assert updated.description == "rent"
        assert updated.amount == Decimal("10")

    def test_update_rejects_unknown_fields(self):
        entry = self.ledger.create_entry("ACC001", "deposit", Decimal("10"))
        with pytest.raises(ValidationError, match="account_id"):
            self.ledger.update_entry(entry.id, "ACC001", {"account_id": "ACC002"})

    def test_update_rejects_null_date(self):
        entry = self.ledger.create_entry("ACC001", "deposit", Decimal("10"))
        with pytest.raises(ValidationError, match="Transaction date is required"):
            self.ledger.update_entry(entry.id, "ACC001", {"date": None})

        assert self.ledger.get_entry(entry.id, "ACC001").date == entry.date
        assert [e.id for e in self.ledger.get_recent_entries("ACC001")] == [entry.id]

    def test_update_missing_entry(self):
        with pytest.raises(LedgerEntryNotFoundError):
            self.ledger.update_entry("missing", "ACC001", {"description": "x"})

    def test_delete_entry(self):
        entry = self.ledger.create_entry("ACC001", "deposit", Decimal("10"))
        self.ledger.delete_entry(entry.id, "ACC001")
        with pytest.raises(LedgerEntryNotFoundError):
            self.ledger.get_entry(entry.id, "ACC001")

    def test_delete_entry_of_other_account_denied(self):
        entry = self.ledger.create_entry("ACC001", "deposit", Decimal("10"))
        with pytest.raises(AccessDeniedError):
            self.ledger.delete_entry(entry.id, "ACC002")
        assert self.ledger.get_entry(entry.id, "ACC001")

    def test_recent_entries_newest_first(self):
        base = datetime(2024, 1, 1, tzinfo=timezone.utc)
        for day in (3, 1, 2):
            self.ledger.record("ACC001", "deposit", Decimal(day), date=base + timedelta(days=day))
        self.ledger.record("ACC002", "deposit", Decimal("99"), date=base)

        recent = self.ledger.get_recent_entries("ACC001", limit=2)
        assert [e.amount for e in recent] == [Decimal("3"), Decimal("2")]

    def test_delete_account_entries(self):
        self.ledger.create_entry("ACC001", "deposit", Decimal("1"))
        self.ledger.create_entry("ACC001", "deposit", Decimal("2"))
        other = self.ledger.create_entry("ACC002", "deposit", Decimal("3"))

        assert self.ledger.delete_account_entries("ACC001") == 2
        assert self.ledger.get_recent_entries("ACC001") == []
        assert self.ledger.get_entry(other.id, "ACC002")
