"""
Pydantic schemas for API requests
"""

from decimal import Decimal
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


# User schemas
class CreateUserRequest(BaseModel):
    name: str
    username: str
    email: str
    password: str


class AuthRequest(BaseModel):
    email: str
    password: str


class ChangePasswordRequest(BaseModel):
    old_password: str
    new_password: str


class UpdateUserRequest(BaseModel):
    """Profile update. Unknown fields are kept so they can be rejected."""
    name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class UpdateSettingsRequest(BaseModel):
    notifications: Optional[bool] = None
    language: Optional[str] = None
    currency: Optional[str] = None
    two_factor_auth: Optional[bool] = None
    email_alerts: Optional[bool] = None
    sms_alerts: Optional[bool] = None
    theme: Optional[str] = None

    model_config = ConfigDict(extra="allow")


# Transaction schemas
class CreateTransactionRequest(BaseModel):
    type: str = Field(..., description="Transaction type (transfer, deposit, exchange, loan, ...)")
    amount: Decimal
    from_label: Optional[str] = Field(None, alias="from")
    to_label: Optional[str] = Field(None, alias="to")
    description: Optional[str] = None
    attachment: Optional[str] = None
    date: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)


class UpdateTransactionRequest(BaseModel):
    type: Optional[str] = None
    amount: Optional[Decimal] = None
    from_label: Optional[str] = Field(None, alias="from")
    to_label: Optional[str] = Field(None, alias="to")
    description: Optional[str] = None
    attachment: Optional[str] = None
    date: Optional[datetime] = None

    model_config = ConfigDict(populate_by_name=True)


# Investment schemas
class CreateInvestmentRequest(BaseModel):
    type: Optional[str] = Field(None, description="fixed-income or variable-income")
    category: Optional[str] = Field(None, description="investment-fund, private-pension or stock-market")
    subtype: Optional[str] = None
    name: Optional[str] = None
    initial_value: Optional[Decimal] = None
    current_yield: Optional[Decimal] = None
    risk_level: Optional[str] = Field(None, description="low, medium or high")
    maturity_date: Optional[datetime] = None


class UpdateInvestmentRequest(BaseModel):
    """
    Partial update. Unknown and immutable fields are kept so the operation
    can reject them explicitly.
    """
    name: Optional[str] = None
    subtype: Optional[str] = None
    value: Optional[Decimal] = None
    current_yield: Optional[Decimal] = None
    risk_level: Optional[str] = None
    maturity_date: Optional[datetime] = None

    model_config = ConfigDict(extra="allow")


class TransferRequest(BaseModel):
    investment_id: Optional[str] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None


class RedeemRequest(BaseModel):
    investment_id: Optional[str] = None
    amount: Optional[Decimal] = None
    description: Optional[str] = None
    redeem_type: Optional[str] = Field(None, description="partial (default) or total")


# Card schemas
class CreateCardRequest(BaseModel):
    type: Optional[str] = Field(None, description="credit, debit or both")
    number: Optional[str] = None
    due_date: Optional[str] = Field(None, description="ISO date or timestamp")
    functions: Optional[str] = Field(None, description="Comma separated, e.g. credit,debit,withdraw")
    cvc: Optional[str] = None
    name: Optional[str] = None
    payment_date: Optional[str] = None


class UpdateCardRequest(BaseModel):
    type: Optional[str] = None
    number: Optional[str] = None
    due_date: Optional[str] = None
    functions: Optional[str] = None
    cvc: Optional[str] = None
    name: Optional[str] = None
    payment_date: Optional[str] = None

    model_config = ConfigDict(extra="allow")


class CardBlockRequest(BaseModel):
    is_blocked: Optional[bool] = None
