"""
Test suite for the document query model

Tests condition operators, type coercion, sorting with missing values and
paging/counting composition.
"""

import pytest
from decimal import Decimal
from datetime import datetime, timezone

from banking_demo.query import (
    DocumentQuery, Operator, apply_query, count_matching, matches,
    parse_decimal, parse_timestamp, sort_documents
)


DOCUMENTS = [
    {"id": "1", "amount": "150.00", "from_label": "Alice Smith", "date": "2024-01-05T10:00:00+00:00"},
    {"id": "2", "amount": "-20.50", "from_label": "bob", "date": "2024-01-03T10:00:00+00:00"},
    {"id": "3", "amount": "1000", "from_label": None, "date": "2024-01-04T10:00:00+00:00"},
    {"id": "4", "amount": "99.99", "date": "2024-01-01T10:00:00+00:00"},
]

FIELD_TYPES = {"amount": parse_decimal, "date": parse_timestamp}


class TestParsing:
    """Test value converters"""

    def test_parse_timestamp_naive_is_utc(self):
        parsed = parse_timestamp("2024-01-01T12:00:00")
        assert parsed.tzinfo == timezone.utc

    def test_parse_timestamp_keeps_datetime(self):
        value = datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert parse_timestamp(value) == value

    def test_parse_timestamp_none(self):
        assert parse_timestamp(None) is None

    def test_parse_decimal(self):
        assert parse_decimal("10.50") == Decimal("10.50")
        assert parse_decimal("not a number") is None
        assert parse_decimal(None) is None


class TestConditions:
    """Test individual condition operators"""

    def test_numeric_comparison_uses_decimal(self):
        """Decimal strings compare numerically, not lexically"""
        query = DocumentQuery(field_types=FIELD_TYPES).where("amount", Operator.GT, Decimal("100"))
        selected = [d["id"] for d in DOCUMENTS if matches(d, query)]
        assert selected == ["1", "3"]

    def test_range_is_inclusive(self):
        query = (DocumentQuery(field_types=FIELD_TYPES)
                 .where("amount", Operator.GTE, Decimal("99.99"))
                 .where("amount", Operator.LTE, Decimal("150.00")))
        selected = [d["id"] for d in DOCUMENTS if matches(d, query)]
        assert selected == ["1", "4"]

    def test_contains_is_case_insensitive(self):
        query = DocumentQuery().where("from_label", Operator.CONTAINS, "SMITH")
        assert [d["id"] for d in DOCUMENTS if matches(d, query)] == ["1"]

    def test_contains_treats_pattern_literally(self):
        documents = [{"id": "a", "description": "price (USD)"}, {"id": "b", "description": "price USD"}]
        query = DocumentQuery().where("description", Operator.CONTAINS, "(usd)")
        assert [d["id"] for d in documents if matches(d, query)] == ["a"]

    def test_missing_field_never_matches_comparison(self):
        query = DocumentQuery().where("from_label", Operator.CONTAINS, "a")
        assert not matches(DOCUMENTS[3], query)
        assert not matches(DOCUMENTS[2], query)

    def test_exists(self):
        present = DocumentQuery().where("from_label", Operator.EXISTS, True)
        absent = DocumentQuery().where("from_label", Operator.EXISTS, False)
        assert [d["id"] for d in DOCUMENTS if matches(d, present)] == ["1", "2"]
        assert [d["id"] for d in DOCUMENTS if matches(d, absent)] == ["3", "4"]

    def test_date_comparison(self):
        bound = datetime(2024, 1, 4, tzinfo=timezone.utc)
        query = DocumentQuery(field_types=FIELD_TYPES).where("date", Operator.GTE, bound)
        assert [d["id"] for d in DOCUMENTS if matches(d, query)] == ["1", "3"]


class TestSortingAndPaging:
    """Test ordering, skip/limit and count"""

    def test_sort_ascending_by_amount(self):
        query = DocumentQuery(sort_by="amount", field_types=FIELD_TYPES)
        assert [d["id"] for d in sort_documents(DOCUMENTS, query)] == ["2", "4", "1", "3"]

    def test_sort_descending_by_date(self):
        query = DocumentQuery(sort_by="date", descending=True, field_types=FIELD_TYPES)
        assert [d["id"] for d in sort_documents(DOCUMENTS, query)] == ["1", "3", "2", "4"]

    def test_missing_values_sort_last(self):
        for descending in (False, True):
            query = DocumentQuery(sort_by="from_label", descending=descending)
            ordered = [d["id"] for d in sort_documents(DOCUMENTS, query)]
            assert ordered[-2:] == ["3", "4"]

    def test_skip_and_limit(self):
        query = DocumentQuery(sort_by="amount", field_types=FIELD_TYPES, skip=1, limit=2)
        assert [d["id"] for d in apply_query(DOCUMENTS, query)] == ["4", "1"]

    def test_count_ignores_paging(self):
        query = DocumentQuery(field_types=FIELD_TYPES, skip=3, limit=1)
        query.where("amount", Operator.GT, Decimal("0"))
        assert len(apply_query(DOCUMENTS, query)) == 0
        assert count_matching(DOCUMENTS, query) == 3

