"""
Expense management routes.
"""
from fastapi import APIRouter, Depends, status
from tripledger.api.dependencies import get_budget_service, get_current_user_id
from tripledger.schemas.budget import BudgetSnapshot
from tripledger.schemas.expense import ExpenseCreate, ExpenseUpdate
from tripledger.services.budget_service import BudgetService

router = APIRouter(tags=["expenses"])


@router.post("/trips/{trip_id}/expenses", response_model=BudgetSnapshot, status_code=status.HTTP_201_CREATED)
async def create_expense(
    trip_id: str,
    expense_data: ExpenseCreate,
    current_user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service)
):
    """Record an expense on the trip budget."""
    return service.create_expense(trip_id, current_user_id, expense_data)


@router.patch("/expenses/{expense_id}", response_model=BudgetSnapshot)
async def update_expense(
    expense_id: int,
    expense_data: ExpenseUpdate,
    current_user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service)
):
    """Update an expense; splits are recomputed when needed."""
    return service.update_expense(expense_id, current_user_id, expense_data)


@router.delete("/expenses/{expense_id}", response_model=BudgetSnapshot)
async def delete_expense(
    expense_id: int,
    current_user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service)
):
    """Delete an expense."""
    return service.delete_expense(expense_id, current_user_id)
