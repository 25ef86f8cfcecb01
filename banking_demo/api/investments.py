"""
Investment endpoints
"""

from decimal import Decimal
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status

from .auth import BankingSystem, get_banking_system, get_current_account
from .responses import (
    entry_to_response, investment_to_response, summary_to_response, unwrap_result
)
from .schemas import CreateInvestmentRequest, RedeemRequest, TransferRequest, UpdateInvestmentRequest
from ..investments import InvestmentFilters, MaturityStatus
from ..taxonomy import InvestmentType, InvestmentCategory, RiskLevel, describe_taxonomy, parse_enum


router = APIRouter()


def _enum_filter(enum_cls, value: Optional[str], label: str):
    if value is None:
        return None
    parsed = parse_enum(enum_cls, value)
    if not parsed:
        raise HTTPException(status_code=400, detail=f"Invalid {label}")
    return parsed


@router.get("/types")
async def get_investment_types():
    """Investment taxonomy: types, categories, subtypes and risk levels"""
    return describe_taxonomy()


@router.get("")
async def list_investments(
    type: Optional[str] = None,
    category: Optional[str] = None,
    subtype: Optional[str] = None,
    risk_level: Optional[str] = None,
    purchased_from: Optional[datetime] = None,
    purchased_to: Optional[datetime] = None,
    min_value: Optional[Decimal] = None,
    max_value: Optional[Decimal] = None,
    maturity_status: Optional[str] = None,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    """Investments of the account with a portfolio summary"""
    filters = InvestmentFilters(
        type=_enum_filter(InvestmentType, type, "investment type"),
        category=_enum_filter(InvestmentCategory, category, "investment category"),
        subtype=subtype,
        risk_level=_enum_filter(RiskLevel, risk_level, "risk level"),
        purchased_from=purchased_from,
        purchased_to=purchased_to,
        min_value=min_value,
        max_value=max_value,
        maturity_status=_enum_filter(MaturityStatus, maturity_status, "maturity status")
    )
    listing = unwrap_result(system.investment_operations.list_investments(account_id, filters))
    return {
        "investments": [investment_to_response(d) for d in listing.investments],
        "summary": summary_to_response(listing.summary),
        "count": listing.count
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_investment(
    request: CreateInvestmentRequest,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.investment_operations.create_investment(
        account_id=account_id,
        investment_type=request.type,
        category=request.category,
        subtype=request.subtype,
        name=request.name,
        initial_value=request.initial_value,
        risk_level=request.risk_level,
        current_yield=request.current_yield,
        maturity_date=request.maturity_date
    )
    details = unwrap_result(result)
    return {"investment": investment_to_response(details), "message": result.message}


@router.post("/transfer")
async def transfer_to_investment(
    request: TransferRequest,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    """Move money from the account into an investment"""
    result = system.investment_operations.transfer_to_investment(
        account_id=account_id,
        investment_id=request.investment_id,
        amount=request.amount,
        description=request.description
    )
    outcome = unwrap_result(result)
    return {
        "investment": investment_to_response(outcome.investment),
        "transaction": entry_to_response(outcome.ledger_entry),
        "transferred_amount": str(outcome.transferred_amount),
        "new_investment_value": str(outcome.new_investment_value),
        "message": result.message
    }


@router.post("/redeem")
async def redeem_investment(
    request: RedeemRequest,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    """Move money from an investment back into the account"""
    result = system.investment_operations.redeem_investment(
        account_id=account_id,
        investment_id=request.investment_id,
        amount=request.amount,
        description=request.description,
        redeem_type=request.redeem_type
    )
    outcome = unwrap_result(result)
    response = {
        "transaction": entry_to_response(outcome.ledger_entry),
        "redeemed_amount": str(outcome.redeemed_amount),
        "redeem_type": outcome.redeem_type,
        "message": result.message
    }
    if outcome.investment_completely_redeemed:
        response["investment_completely_redeemed"] = True
        response["original_investment_value"] = str(outcome.original_investment_value)
    else:
        response["investment"] = investment_to_response(outcome.investment)
    return response


@router.get("/{investment_id}")
async def get_investment(
    investment_id: str,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    details = unwrap_result(system.investment_operations.get_investment(investment_id, account_id))
    return {"investment": investment_to_response(details)}


@router.put("/{investment_id}")
async def update_investment(
    investment_id: str,
    request: UpdateInvestmentRequest,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.investment_operations.update_investment(
        investment_id, account_id, request.model_dump(exclude_unset=True)
    )
    details = unwrap_result(result)
    return {"investment": investment_to_response(details), "message": result.message}


@router.delete("/{investment_id}")
async def delete_investment(
    investment_id: str,
    account_id: str = Depends(get_current_account),
    system: BankingSystem = Depends(get_banking_system)
):
    result = system.investment_operations.delete_investment(investment_id, account_id)
    outcome = unwrap_result(result)
    response = {
        "deleted_investment": {
            "id": outcome.id,
            "name": outcome.name,
            "value": str(outcome.value)
        },
        "message": result.message
    }
    if outcome.warning:
        response["warning"] = outcome.warning
    return response
