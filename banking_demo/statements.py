"""
Statement Query Engine

Filtered, sorted and paginated views over an account's ledger entries. All
predicates are combined into one conjunctive document query; the total count
is computed over the full filtered set independently of paging.
"""

import math
from decimal import Decimal
from datetime import date, datetime, time, timezone
from dataclasses import dataclass, field
from typing import Any, List, Optional

from .storage import StorageInterface
from .ledger import LEDGER_TABLE, LedgerEntry, entry_from_dict
from .errors import BankingDemoError, OperationResult, ValidationError, persistence_errors
from .query import DocumentQuery, Operator, parse_decimal, parse_timestamp
from .logging_config import get_logger, log_action


# Public sort/filter names mapped to stored document fields
SORT_FIELDS = {
    "date": "date",
    "amount": "amount",
    "type": "entry_type",
    "from": "from_label",
    "to": "to_label",
    "description": "description",
}
SORT_ORDERS = {"asc", "desc"}

FIELD_TYPES = {
    "date": parse_timestamp,
    "amount": parse_decimal,
}


@dataclass
class StatementQuery:
    """Statement filters. Every filter is optional."""
    start_date: Optional[Any] = None
    end_date: Optional[Any] = None
    type: Optional[str] = None
    from_label: Optional[str] = None
    to_label: Optional[str] = None
    description: Optional[str] = None
    attachment: Optional[str] = None
    min_value: Optional[Any] = None
    max_value: Optional[Any] = None
    page: int = 1
    limit: Optional[int] = None
    sort_by: str = "date"
    sort_order: str = "desc"


@dataclass
class Pagination:
    current_page: int
    total_pages: int
    total_count: int
    has_next_page: bool
    has_previous_page: bool
    limit: int


@dataclass
class Statement:
    entries: List[LedgerEntry] = field(default_factory=list)
    pagination: Optional[Pagination] = None


def _bound(value: Any, label: str, end_of_day: bool = False) -> datetime:
    """
    Parse a date bound. A bare date used as an upper bound covers the whole
    day.
    """
    if isinstance(value, str):
        value = value.strip()
        try:
            value = date.fromisoformat(value)
        except ValueError:
            pass  # not a bare date, parsed as a timestamp below
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=timezone.utc)
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{label} must be a valid date")


def _amount_bound(value: Any, label: str) -> Decimal:
    parsed = parse_decimal(value)
    if parsed is None or not parsed.is_finite():
        raise ValidationError(f"{label} must be a number")
    return parsed


class StatementEngine:
    """
    Builds and runs statement queries against the ledger table
    """

    def __init__(self, storage: StorageInterface, default_limit: int = 10, max_limit: int = 100):
        self.storage = storage
        self.table_name = LEDGER_TABLE
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.logger = get_logger("banking_demo.statements")

    def build_query(self, request: StatementQuery) -> DocumentQuery:
        """Validate the request and translate it into a document query"""
        page = request.page if request.page is not None else 1
        limit = request.limit if request.limit is not None else self.default_limit
        if not isinstance(page, int) or page < 1:
            raise ValidationError("Page must be at least 1")
        if not isinstance(limit, int) or limit < 1 or limit > self.max_limit:
            raise ValidationError(f"Limit must be between 1 and {self.max_limit}")

        sort_by = request.sort_by or "date"
        sort_order = (request.sort_order or "desc").lower()
        if sort_by not in SORT_FIELDS:
            raise ValidationError(
                f"Sort field must be one of: {', '.join(SORT_FIELDS)}"
            )
        if sort_order not in SORT_ORDERS:
            raise ValidationError("Sort order must be 'asc' or 'desc'")

        query = DocumentQuery(
            sort_by=SORT_FIELDS[sort_by],
            descending=sort_order == "desc",
            skip=(page - 1) * limit,
            limit=limit,
            field_types=FIELD_TYPES
        )

        if request.start_date is not None:
            query.where("date", Operator.GTE, _bound(request.start_date, "Start date"))
        if request.end_date is not None:
            query.where("date", Operator.LTE, _bound(request.end_date, "End date", end_of_day=True))
        if request.type:
            query.where("entry_type", Operator.EQ, request.type)
        if request.from_label:
            query.where("from_label", Operator.CONTAINS, request.from_label)
        if request.to_label:
            query.where("to_label", Operator.CONTAINS, request.to_label)
        if request.description:
            query.where("description", Operator.CONTAINS, request.description)
        if request.attachment:
            query.where("attachment", Operator.CONTAINS, request.attachment)
        if request.min_value is not None:
            query.where("amount", Operator.GTE, _amount_bound(request.min_value, "Minimum value"))
        if request.max_value is not None:
            query.where("amount", Operator.LTE, _amount_bound(request.max_value, "Maximum value"))

        return query

    def get_statement(self, account_id: str, request: Optional[StatementQuery] = None) -> OperationResult[Statement]:
        """
        Run a statement query scoped to one account

        Returns:
            OperationResult wrapping the page of entries and its pagination
        """
        request = request or StatementQuery()
        try:
            query = self.build_query(request)
            scope = {"account_id": account_id}
            with persistence_errors("query statement"):
                records = self.storage.query(self.table_name, query, scope=scope)
                total_count = self.storage.count_matching(self.table_name, query, scope=scope)
        except BankingDemoError as e:
            log_action(
                self.logger, "warning", e.message,
                account_id=account_id, action="get_statement", extra={"error_code": e.code}
            )
            return OperationResult.fail(e)

        page = query.skip // query.limit + 1
        total_pages = math.ceil(total_count / query.limit)
        statement = Statement(
            entries=[entry_from_dict(data) for data in records],
            pagination=Pagination(
                current_page=page,
                total_pages=total_pages,
                total_count=total_count,
                has_next_page=page < total_pages,
                has_previous_page=page > 1,
                limit=query.limit
            )
        )
        log_action(
            self.logger, "debug", "Statement queried",
            account_id=account_id, action="get_statement",
            extra={"page": page, "total_count": total_count}
        )
        return OperationResult.ok(statement)
