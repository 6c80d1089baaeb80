"""
Pydantic schemas for Budget entity and the budget snapshot read-model.
"""
from pydantic import BaseModel, ConfigDict
from typing import Optional, List, Any
from datetime import datetime
from decimal import Decimal
from tripledger.schemas.expense import ExpenseResponse


class BudgetCreate(BaseModel):
    """Schema for budget creation."""
    base_currency: Optional[str] = None  # Falls back to DEFAULT_CURRENCY
    total_budget_amount: Optional[Any] = None  # Evenly seeded across current members


class BudgetUpdate(BaseModel):
    """Schema for base budget update. ``None`` clears the target."""
    base_budget_amount: Optional[Any] = None


class BudgetMemberUpdate(BaseModel):
    """Schema for a member's planned contribution update."""
    planned_contribution: Any


class BudgetRulesUpdate(BaseModel):
    """Schema for rules update; omitted rules keep their value."""
    allow_member_expense_creation: Optional[bool] = None
    allow_member_contribution_edits: Optional[bool] = None
    allow_member_expense_edits: Optional[bool] = None


class BudgetCloneRequest(BaseModel):
    """Schema for cloning a budget into another trip."""
    target_trip_id: str
    mode: str = "planning"


class BudgetRulesResponse(BaseModel):
    """Schema for budget rules."""
    allow_member_expense_creation: bool = True
    allow_member_contribution_edits: bool = True
    allow_member_expense_edits: bool = True


class BudgetMemberResponse(BaseModel):
    """Schema for budget member response."""
    user_id: str
    planned_contribution: Decimal
    role: str
    joined_at: datetime
    is_past_member: bool

    model_config = ConfigDict(from_attributes=True)


class BudgetResponse(BaseModel):
    """Schema for budget response."""
    id: int
    trip_id: str
    created_by: str
    base_currency: str
    base_budget_amount: Optional[Decimal] = None
    members: List[BudgetMemberResponse] = []
    rules: BudgetRulesResponse
    created_at: datetime
    updated_at: datetime


class BudgetSummary(BaseModel):
    """Trip-level totals."""
    total_planned: Decimal  # Sum of member planned contributions
    total_spent: Decimal  # Sum of expense amounts
    remaining: Decimal  # total_planned - total_spent
    base_budget_amount: Optional[Decimal] = None  # Declared target, if any
    target_delta: Optional[Decimal] = None  # target - total_planned; positive = shortfall, negative = buffer


class MemberBudgetSummary(BaseModel):
    """Per-member totals."""
    user_id: str
    planned: Decimal
    spent: Decimal
    remaining: Decimal
    is_past_member: bool = False


class BudgetSnapshot(BaseModel):
    """Fully aggregated view of a trip budget. Never persisted."""
    budget: BudgetResponse
    expenses: List[ExpenseResponse] = []
    summary: BudgetSummary
    member_summaries: List[MemberBudgetSummary] = []
