"""
Account endpoints: summary, statement and transaction CRUD
"""

from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status

from .auth import BankingSystem, get_banking_system, get_current_account
from .responses import (
    account_to_response, entry_to_response, http_errors, unwrap_result
)
from .schemas import CreateTransactionRequest, UpdateTransactionRequest
from ..statements import StatementQuery


router = APIRouter()

# Request field name -> ledger entry attribute
TRANSACTION_FIELDS = {
    "type": "entry_type",
    "amount": "amount",
    "from_label": "from_label",
    "to_label": "to_label",
    "description": "description",
    "attachment": "attachment",
    "date": "date",
}


@router.get("")
async def get_account_summary(
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    """Account details with its most recent transactions"""
    with http_errors():
        summary = system.account_manager.get_summary(account_id)
    return {
        "account": account_to_response(summary["account"]),
        "transactions": [entry_to_response(e) for e in summary["recent_entries"]]
    }


@router.get("/{account_id}/statement")
async def get_statement(
    account_id: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    type: Optional[str] = None,
    from_label: Optional[str] = Query(None, alias="from"),
    to_label: Optional[str] = Query(None, alias="to"),
    description: Optional[str] = None,
    attachment: Optional[str] = None,
    min_value: Optional[str] = None,
    max_value: Optional[str] = None,
    page: int = 1,
    limit: Optional[int] = None,
    sort_by: str = "date",
    sort_order: str = "desc",
    current_account: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    """Filtered, sorted and paginated transactions of the account"""
    if account_id != current_account:
        raise HTTPException(status_code=403, detail="Access denied")

    statement = unwrap_result(system.statement_engine.get_statement(
        account_id,
        StatementQuery(
            start_date=start_date,
            end_date=end_date,
            type=type,
            from_label=from_label,
            to_label=to_label,
            description=description,
            attachment=attachment,
            min_value=min_value,
            max_value=max_value,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order
        )
    ))
    pagination = statement.pagination
    return {
        "transactions": [entry_to_response(e) for e in statement.entries],
        "pagination": {
            "current_page": pagination.current_page,
            "total_pages": pagination.total_pages,
            "total_count": pagination.total_count,
            "has_next_page": pagination.has_next_page,
            "has_previous_page": pagination.has_previous_page,
            "limit": pagination.limit
        }
    }


@router.post("/transactions", status_code=status.HTTP_201_CREATED)
async def create_transaction(
    request: CreateTransactionRequest,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    with http_errors():
        entry = system.ledger.create_entry(
            account_id=account_id,
            entry_type=request.type,
            amount=request.amount,
            from_label=request.from_label,
            to_label=request.to_label,
            description=request.description,
            attachment=request.attachment,
            date=request.date
        )
    return {"transaction": entry_to_response(entry), "message": "Transaction created successfully"}


@router.get("/transactions/{entry_id}")
async def get_transaction(
    entry_id: str,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    with http_errors():
        entry = system.ledger.get_entry(entry_id, account_id)
    return {"transaction": entry_to_response(entry)}


@router.put("/transactions/{entry_id}")
async def update_transaction(
    entry_id: str,
    request: UpdateTransactionRequest,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    changes = {
        TRANSACTION_FIELDS[key]: value
        for key, value in request.model_dump(exclude_unset=True).items()
    }
    with http_errors():
        entry = system.ledger.update_entry(entry_id, account_id, changes)
    return {"transaction": entry_to_response(entry), "message": "Transaction updated successfully"}


@router.delete("/transactions/{entry_id}")
async def delete_transaction(
    entry_id: str,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    with http_errors():
        entry = system.ledger.delete_entry(entry_id, account_id)
    return {"id": entry.id, "message": "Transaction deleted successfully"}
