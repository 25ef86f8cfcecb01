"""
Investment Repository Module

Investment entities plus account-scoped persistence: filtered lookups,
point lookups, partial updates, deletes and portfolio aggregates. The
repository never checks ownership; operations do that through their guard.
"""

from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum

from .storage import StorageInterface, StorageRecord
from .taxonomy import InvestmentType, InvestmentCategory, RiskLevel
from .errors import persistence_errors
from .query import DocumentQuery, Operator, parse_decimal, parse_timestamp


INVESTMENTS_TABLE = "investments"

TWO_PLACES = Decimal("0.01")


class MaturityStatus(Enum):
    """Maturity filter for investment listings"""
    MATURED = "matured"   # maturity date reached
    PENDING = "pending"   # maturity date still ahead
    NONE = "none"         # no maturity date


@dataclass
class Investment(StorageRecord):
    """
    A position held by an account. ``initial_value`` and ``purchase_date``
    never change after creation.
    """
    account_id: str
    type: InvestmentType
    category: InvestmentCategory
    subtype: str
    name: str
    value: Decimal
    initial_value: Decimal
    risk_level: RiskLevel
    purchase_date: datetime
    current_yield: Decimal = Decimal("0")
    maturity_date: Optional[datetime] = None

    def __post_init__(self):
        if self.value < 0:
            raise ValueError("Investment value cannot be negative")

    @property
    def profit(self) -> Decimal:
        return self.value - self.initial_value

    def is_matured(self, now: Optional[datetime] = None) -> bool:
        if not self.maturity_date:
            return False
        return (now or datetime.now(timezone.utc)) >= self.maturity_date


@dataclass
class InvestmentFilters:
    """Optional listing filters, all combined with AND"""
    type: Optional[InvestmentType] = None
    category: Optional[InvestmentCategory] = None
    subtype: Optional[str] = None
    risk_level: Optional[RiskLevel] = None
    purchased_from: Optional[datetime] = None
    purchased_to: Optional[datetime] = None
    min_value: Optional[Decimal] = None
    max_value: Optional[Decimal] = None
    maturity_status: Optional[MaturityStatus] = None


@dataclass
class CategoryAggregate:
    category: str
    total_value: Decimal
    total_initial_value: Decimal
    count: int
    average_yield: Decimal


@dataclass
class PortfolioAggregate:
    total_value: Decimal = Decimal("0")
    total_initial_value: Decimal = Decimal("0")
    count: int = 0
    by_category: List[CategoryAggregate] = field(default_factory=list)


FIELD_TYPES = {
    "value": parse_decimal,
    "initial_value": parse_decimal,
    "current_yield": parse_decimal,
    "purchase_date": parse_timestamp,
    "maturity_date": parse_timestamp,
    "created_at": parse_timestamp,
}


def build_investment_query(filters: Optional[InvestmentFilters], now: Optional[datetime] = None) -> DocumentQuery:
    """Translate listing filters into a document query, newest first"""
    query = DocumentQuery(sort_by="created_at", descending=True, field_types=FIELD_TYPES)
    if not filters:
        return query

    if filters.type:
        query.where("type", Operator.EQ, filters.type.value)
    if filters.category:
        query.where("category", Operator.EQ, filters.category.value)
    if filters.subtype:
        query.where("subtype", Operator.EQ, filters.subtype)
    if filters.risk_level:
        query.where("risk_level", Operator.EQ, filters.risk_level.value)
    if filters.purchased_from:
        query.where("purchase_date", Operator.GTE, filters.purchased_from)
    if filters.purchased_to:
        query.where("purchase_date", Operator.LTE, filters.purchased_to)
    if filters.min_value is not None:
        query.where("value", Operator.GTE, filters.min_value)
    if filters.max_value is not None:
        query.where("value", Operator.LTE, filters.max_value)

    now = now or datetime.now(timezone.utc)
    if filters.maturity_status == MaturityStatus.MATURED:
        query.where("maturity_date", Operator.LTE, now)
    elif filters.maturity_status == MaturityStatus.PENDING:
        query.where("maturity_date", Operator.GT, now)
    elif filters.maturity_status == MaturityStatus.NONE:
        query.where("maturity_date", Operator.EXISTS, False)

    return query


class InvestmentRepository:
    """
    Document-store persistence for investments
    """

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self.table_name = INVESTMENTS_TABLE

    def save(self, investment: Investment) -> Investment:
        with persistence_errors("save investment"):
            self.storage.save(self.table_name, investment.id, investment.to_dict())
        return investment

    def find_by_id(self, investment_id: str) -> Optional[Investment]:
        with persistence_errors("load investment"):
            data = self.storage.load(self.table_name, investment_id)
        return investment_from_dict(data) if data else None

    def find_by_account(self, account_id: str, filters: Optional[InvestmentFilters] = None) -> List[Investment]:
        query = build_investment_query(filters)
        with persistence_errors("search investments"):
            records = self.storage.query(self.table_name, query, scope={"account_id": account_id})
        return [investment_from_dict(data) for data in records]

    def update(self, investment_id: str, changes: Dict[str, Any]) -> Optional[Investment]:
        """Merge changes into the stored investment. Returns None if absent."""
        investment = self.find_by_id(investment_id)
        if not investment:
            return None

        for key, value in changes.items():
            setattr(investment, key, value)
        if investment.value < 0:
            raise ValueError("Investment value cannot be negative")
        investment.updated_at = datetime.now(timezone.utc)

        return self.save(investment)

    def delete(self, investment_id: str) -> Optional[Investment]:
        """Remove an investment. Returns the deleted entity, or None if absent."""
        investment = self.find_by_id(investment_id)
        if not investment:
            return None
        with persistence_errors("delete investment"):
            self.storage.delete(self.table_name, investment_id)
        return investment

    def delete_by_account(self, account_id: str) -> int:
        with persistence_errors("delete investments"):
            records = self.storage.find(self.table_name, {"account_id": account_id})
            for data in records:
                self.storage.delete(self.table_name, data["id"])
        return len(records)

    def aggregate(self, account_id: str, filters: Optional[InvestmentFilters] = None) -> PortfolioAggregate:
        """
        Totals and per-category breakdown over the filtered set
        """
        investments = self.find_by_account(account_id, filters)
        result = PortfolioAggregate()

        groups: Dict[str, List[Investment]] = {}
        for investment in investments:
            result.total_value += investment.value
            result.total_initial_value += investment.initial_value
            result.count += 1
            groups.setdefault(investment.category.value, []).append(investment)

        for category, members in groups.items():
            total_yield = sum((m.current_yield for m in members), Decimal("0"))
            result.by_category.append(CategoryAggregate(
                category=category,
                total_value=sum((m.value for m in members), Decimal("0")),
                total_initial_value=sum((m.initial_value for m in members), Decimal("0")),
                count=len(members),
                average_yield=(total_yield / len(members)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
            ))

        result.by_category.sort(key=lambda c: c.category)
        return result


def investment_from_dict(data: Dict[str, Any]) -> Investment:
    """Rebuild an Investment from its stored document"""
    return Investment(
        id=data['id'],
        created_at=parse_timestamp(data['created_at']),
        updated_at=parse_timestamp(data['updated_at']),
        account_id=data['account_id'],
        type=InvestmentType(data['type']),
        category=InvestmentCategory(data['category']),
        subtype=data['subtype'],
        name=data['name'],
        value=Decimal(data['value']),
        initial_value=Decimal(data['initial_value']),
        risk_level=RiskLevel(data['risk_level']),
        purchase_date=parse_timestamp(data['purchase_date']),
        current_yield=Decimal(data.get('current_yield') or "0"),
        maturity_date=parse_timestamp(data.get('maturity_date'))
    )
