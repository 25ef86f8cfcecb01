"""
Response serialization and error mapping for the REST layer
"""

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from fastapi import HTTPException

from ..errors import (
    AccessDeniedError, AuthenticationError, BankingDemoError, NotFoundError,
    OperationResult, PersistenceError, ValidationError
)
from ..accounts import Account
from ..ledger import LedgerEntry
from ..cards import Card
from ..users import User
from ..investment_operations import InvestmentDetails, PortfolioSummary
from ..logging_config import get_logger


logger = get_logger("banking_demo.api")

ERROR_STATUS = [
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AccessDeniedError, 403),
    (NotFoundError, 404),
    (PersistenceError, 500),
]


def status_for(error: BankingDemoError) -> int:
    for error_cls, status_code in ERROR_STATUS:
        if isinstance(error, error_cls):
            return status_code
    return 500


def to_http_exception(error: BankingDemoError) -> HTTPException:
    status_code = status_for(error)
    if status_code == 500:
        logger.error(f"Request failed: {error.message}")
        return HTTPException(status_code=500, detail="Internal storage error")
    return HTTPException(status_code=status_code, detail=error.message)


def unwrap_result(result: OperationResult) -> Any:
    """Return the result value or raise the matching HTTP error"""
    if not result.success:
        raise to_http_exception(result.error)
    return result.value


@contextmanager
def http_errors():
    """Translate domain errors raised inside the block into HTTP errors"""
    try:
        yield
    except BankingDemoError as e:
        raise to_http_exception(e) from e


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _money(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def user_to_response(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "username": user.username,
        "email": user.email,
        "settings": user.settings,
        "created_at": _iso(user.created_at)
    }


def account_to_response(account: Account) -> Dict[str, Any]:
    return {
        "id": account.id,
        "user_id": account.user_id,
        "account_number": account.account_number,
        "account_type": account.account_type,
        "created_at": _iso(account.created_at)
    }


def entry_to_response(entry: LedgerEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "account_id": entry.account_id,
        "type": entry.entry_type,
        "amount": _money(entry.amount),
        "from": entry.from_label,
        "to": entry.to_label,
        "description": entry.description,
        "attachment": entry.attachment,
        "date": _iso(entry.date),
        "created_at": _iso(entry.created_at)
    }


def card_to_response(card: Card) -> Dict[str, Any]:
    """Card fields without the security code. The number is masked."""
    return {
        "id": card.id,
        "account_id": card.account_id,
        "type": card.card_type.value,
        "number": card.masked_number,
        "name": card.name,
        "functions": card.functions,
        "due_date": _iso(card.due_date),
        "payment_date": _iso(card.payment_date),
        "is_blocked": card.is_blocked,
        "created_at": _iso(card.created_at),
        "updated_at": _iso(card.updated_at)
    }


def investment_to_response(details: InvestmentDetails) -> Dict[str, Any]:
    investment = details.investment
    metrics = details.metrics
    result = {
        "id": investment.id,
        "account_id": investment.account_id,
        "type": investment.type.value,
        "category": investment.category.value,
        "subtype": investment.subtype,
        "name": investment.name,
        "value": _money(investment.value),
        "initial_value": _money(investment.initial_value),
        "current_yield": _money(investment.current_yield),
        "risk_level": investment.risk_level.value,
        "purchase_date": _iso(investment.purchase_date),
        "maturity_date": _iso(investment.maturity_date),
        "created_at": _iso(investment.created_at),
        "updated_at": _iso(investment.updated_at),
        "profit": _money(metrics.profit),
        "profit_percentage": _money(metrics.profit_percentage),
        "is_matured": metrics.is_matured
    }
    if metrics.investment_days is not None:
        result["days_to_maturity"] = metrics.days_to_maturity
        result["investment_days"] = metrics.investment_days
    return result


def summary_to_response(summary: PortfolioSummary) -> Dict[str, Any]:
    return {
        "total_value": _money(summary.total_value),
        "total_initial_value": _money(summary.total_initial_value),
        "total_profit": _money(summary.total_profit),
        "total_profit_percentage": _money(summary.total_profit_percentage),
        "count": summary.count,
        "by_category": [
            {
                "category": c.category,
                "total_value": _money(c.total_value),
                "total_initial_value": _money(c.total_initial_value),
                "count": c.count,
                "average_yield": _money(c.average_yield),
                "profit": _money(c.profit),
                "profit_percentage": _money(c.profit_percentage)
            }
            for c in summary.by_category
        ]
    }
