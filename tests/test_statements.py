"""
Test suite for the statement query engine

Tests conjunctive filtering, sorting, pagination metadata and request
validation over an account's ledger entries.
"""

import pytest
from decimal import Decimal
from datetime import date, datetime, timezone, timedelta

from banking_demo.storage import InMemoryStorage, SQLiteStorage
from banking_demo.audit import AuditTrail
from banking_demo.ledger import AccountLedger
from banking_demo.statements import StatementEngine, StatementQuery


BASE = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestStatementEngine:

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.ledger = AccountLedger(self.storage, AuditTrail(self.storage, enabled=False))
        self.engine = StatementEngine(self.storage)

    def seed_amounts(self, count=30):
        for i in range(count):
            self.ledger.record(
                "ACC001", "deposit", Decimal(10 + 20 * i),
                from_label="Employer", to_label="AC-000001",
                date=BASE + timedelta(hours=i)
            )

    def test_amount_window_second_page_ascending(self):
        self.seed_amounts()
        self.ledger.record("ACC002", "deposit", Decimal("200"), date=BASE)

        result = self.engine.get_statement("ACC001", StatementQuery(
            min_value="100", max_value="500", sort_by="amount", sort_order="asc",
            page=2, limit=10
        ))

        assert result.success
        amounts = [e.amount for e in result.value.entries]
        assert amounts == [Decimal(310 + 20 * i) for i in range(10)]

        pagination = result.value.pagination
        assert pagination.total_count == 20
        assert pagination.total_pages == 2
        assert pagination.current_page == 2
        assert pagination.has_previous_page
        assert not pagination.has_next_page
        assert pagination.limit == 10

    def test_default_is_newest_first_with_default_limit(self):
        self.seed_amounts(15)
        result = self.engine.get_statement("ACC001")

        entries = result.value.entries
        assert len(entries) == 10
        assert entries[0].date == BASE + timedelta(hours=14)
        assert all(a.date >= b.date for a, b in zip(entries, entries[1:]))
        assert result.value.pagination.has_next_page
        assert not result.value.pagination.has_previous_page

    def test_date_only_end_bound_covers_whole_day(self):
        self.ledger.record("ACC001", "deposit", Decimal("1"), date=datetime(2024, 3, 1, 23, 30, tzinfo=timezone.utc))
        self.ledger.record("ACC001", "deposit", Decimal("2"), date=datetime(2024, 3, 2, 0, 0, 1, tzinfo=timezone.utc))
        self.ledger.record("ACC001", "deposit", Decimal("3"), date=datetime(2024, 2, 29, 12, 0, tzinfo=timezone.utc))

        result = self.engine.get_statement("ACC001", StatementQuery(
            start_date="2024-03-01", end_date="2024-03-01"
        ))
        assert [e.amount for e in result.value.entries] == [Decimal("1")]

        result = self.engine.get_statement("ACC001", StatementQuery(
            start_date=date(2024, 2, 29), end_date=date(2024, 3, 2)
        ))
        assert result.value.pagination.total_count == 3

    def test_date_bound_parsing(self):
        self.ledger.record("ACC001", "deposit", Decimal("1"), date=datetime(2024, 3, 1, 23, 30, tzinfo=timezone.utc))
        self.ledger.record("ACC001", "deposit", Decimal("2"), date=datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc))

        result = self.engine.get_statement("ACC001", StatementQuery(end_date=" 2024-03-01 "))
        assert result.value.pagination.total_count == 2

        result = self.engine.get_statement("ACC001", StatementQuery(end_date="2024-03-01T12:00:00"))
        assert [e.amount for e in result.value.entries] == [Decimal("2")]

        result = self.engine.get_statement("ACC001", StatementQuery(end_date="2024-13-01"))
        assert not result.success
        assert "End date must be a valid date" in result.message

    def test_text_filters_are_case_insensitive_substrings(self):
        self.ledger.record("ACC001", "transfer", Decimal("-5"), from_label="AC-000001",
                           to_label="Coffee Shop", description="Morning COFFEE")
        self.ledger.record("ACC001", "transfer", Decimal("-9"), from_label="AC-000001",
                           to_label="Bookstore", description="Novel")

        by_to = self.engine.get_statement("ACC001", StatementQuery(to_label="coffee"))
        by_description = self.engine.get_statement("ACC001", StatementQuery(description="coffee"))
        by_from = self.engine.get_statement("ACC001", StatementQuery(from_label="ac-0000"))

        assert [e.to_label for e in by_to.value.entries] == ["Coffee Shop"]
        assert [e.description for e in by_description.value.entries] == ["Morning COFFEE"]
        assert by_from.value.pagination.total_count == 2

    def test_type_filter_is_exact(self):
        self.ledger.record("ACC001", "investment-transfer", Decimal("-100"))
        self.ledger.record("ACC001", "transfer", Decimal("-50"))

        result = self.engine.get_statement("ACC001", StatementQuery(type="transfer"))
        assert [e.entry_type for e in result.value.entries] == ["transfer"]

    def test_filters_are_combined(self):
        self.ledger.record("ACC001", "transfer", Decimal("-100"), to_label="Rent", date=BASE)
        self.ledger.record("ACC001", "transfer", Decimal("-100"), to_label="Gym", date=BASE)
        self.ledger.record("ACC001", "deposit", Decimal("-100"), to_label="Rent", date=BASE)

        result = self.engine.get_statement("ACC001", StatementQuery(
            type="transfer", to_label="rent", max_value="-50"
        ))
        assert result.value.pagination.total_count == 1

    def test_statement_is_scoped_to_account(self):
        self.ledger.record("ACC002", "deposit", Decimal("10"))
        result = self.engine.get_statement("ACC001")
        assert result.value.entries == []
        assert result.value.pagination.total_count == 0
        assert result.value.pagination.total_pages == 0
        assert not result.value.pagination.has_next_page

    def test_sort_by_label(self):
        for label in ("beta", "alpha", "gamma"):
            self.ledger.record("ACC001", "transfer", Decimal("-1"), to_label=label)
        result = self.engine.get_statement("ACC001", StatementQuery(sort_by="to", sort_order="asc"))
        assert [e.to_label for e in result.value.entries] == ["alpha", "beta", "gamma"]

    @pytest.mark.parametrize("request_kwargs,message", [
        ({"page": 0}, "Page must be at least 1"),
        ({"limit": 0}, "Limit must be between 1 and 100"),
        ({"limit": 101}, "Limit must be between 1 and 100"),
        ({"sort_by": "balance"}, "Sort field must be one of"),
        ({"sort_order": "up"}, "Sort order must be 'asc' or 'desc'"),
        ({"start_date": "not-a-date"}, "Start date must be a valid date"),
        ({"min_value": "ten"}, "Minimum value must be a number"),
    ])
    def test_invalid_requests(self, request_kwargs, message):
        result = self.engine.get_statement("ACC001", StatementQuery(**request_kwargs))
        assert not result.success
        assert result.error_code == "validation_error"
        assert message in result.message


class TestStatementEngineSQLite:
    """Same query semantics on the SQLite backend"""

    def setup_method(self):
        self.storage = SQLiteStorage(":memory:")
        self.ledger = AccountLedger(self.storage, AuditTrail(self.storage, enabled=False))
        self.engine = StatementEngine(self.storage)

    def teardown_method(self):
        self.storage.close()

    def test_amount_sort_is_numeric(self):
        for amount in ("9", "100", "25.50"):
            self.ledger.record("ACC001", "deposit", Decimal(amount))

        result = self.engine.get_statement("ACC001", StatementQuery(sort_by="amount", sort_order="asc"))
        assert [e.amount for e in result.value.entries] == [Decimal("9"), Decimal("25.50"), Decimal("100")]
