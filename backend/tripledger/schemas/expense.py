"""
Pydantic schemas for Expense entity.
"""
from pydantic import BaseModel, ConfigDict
from typing import List, Optional, Any
from datetime import date, datetime
from decimal import Decimal


class SplitInput(BaseModel):
    """A caller-supplied share: a percentage or an explicit amount."""
    user_id: str
    value: Any


class ExpenseCreate(BaseModel):
    """Schema for expense creation."""
    title: Optional[str] = None
    amount: Any
    currency: Optional[str] = None  # Defaults to the budget's base currency
    category: Optional[str] = None
    paid_by: Optional[str] = None  # Defaults to the acting user
    split_method: Optional[str] = None  # equal, percentage or custom; required
    participants: Optional[List[str]] = None  # equal only; omitted means all current members
    splits: Optional[List[SplitInput]] = None  # percentage / custom
    date: Optional[date] = None
    notes: Optional[str] = None


class ExpenseUpdate(BaseModel):
    """Schema for expense update. Omitted fields are left unchanged."""
    title: Optional[str] = None
    amount: Optional[Any] = None
    currency: Optional[str] = None
    category: Optional[str] = None
    paid_by: Optional[str] = None
    split_method: Optional[str] = None
    participants: Optional[List[str]] = None
    splits: Optional[List[SplitInput]] = None
    date: Optional[date] = None
    notes: Optional[str] = None


class ExpenseSplitResponse(BaseModel):
    """Schema for a stored split line."""
    user_id: str
    amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class ExpenseResponse(BaseModel):
    """Schema for expense response."""
    id: int
    trip_id: str
    title: Optional[str] = None
    amount: Decimal
    currency: str
    category: Optional[str] = None
    paid_by: str
    created_by: str
    split_method: str
    splits: List[ExpenseSplitResponse] = []
    date: date
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
