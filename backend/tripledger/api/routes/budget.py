"""
Budget management routes.
"""
from fastapi import APIRouter, Depends, status
from tripledger.api.dependencies import get_budget_service, get_current_user_id
from tripledger.schemas.budget import (
    BudgetCloneRequest, BudgetCreate, BudgetMemberUpdate,
    BudgetRulesUpdate, BudgetSnapshot, BudgetUpdate
)
from tripledger.services.budget_service import BudgetService

router = APIRouter(prefix="/budget", tags=["budget"])


@router.get("/{trip_id}", response_model=BudgetSnapshot)
async def get_budget(
    trip_id: str,
    current_user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service)
):
    """Get the budget snapshot for a trip."""
    return service.get_budget_snapshot(trip_id, current_user_id)


@router.post("/{trip_id}", response_model=BudgetSnapshot, status_code=status.HTTP_201_CREATED)
async def create_budget(
    trip_id: str,
    budget_data: BudgetCreate,
    current_user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service)
):
    """Create the shared budget for a trip."""
    return service.create_budget(trip_id, current_user_id, budget_data)


@router.patch("/{trip_id}", response_model=BudgetSnapshot)
async def update_base_budget(
    trip_id: str,
    budget_data: BudgetUpdate,
    current_user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service)
):
    """Set or clear the trip's target amount."""
    return service.update_base_budget(trip_id, current_user_id, budget_data)


@router.patch("/{trip_id}/rules", response_model=BudgetSnapshot)
async def update_budget_rules(
    trip_id: str,
    rules_data: BudgetRulesUpdate,
    current_user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service)
):
    """Change what members may do."""
    return service.update_rules(trip_id, current_user_id, rules_data)


@router.patch("/{trip_id}/members/{user_id}", response_model=BudgetSnapshot)
async def update_budget_member(
    trip_id: str,
    user_id: str,
    member_data: BudgetMemberUpdate,
    current_user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service)
):
    """Update a member's planned contribution."""
    return service.update_member_contribution(trip_id, current_user_id, user_id, member_data)


@router.post("/{trip_id}/clone", response_model=BudgetSnapshot, status_code=status.HTTP_201_CREATED)
async def clone_budget(
    trip_id: str,
    clone_data: BudgetCloneRequest,
    current_user_id: str = Depends(get_current_user_id),
    service: BudgetService = Depends(get_budget_service)
):
    """Copy this trip's budget into another trip."""
    return service.clone_budget(trip_id, clone_data.target_trip_id, current_user_id, clone_data.mode)
