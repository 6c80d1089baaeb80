"""
Snapshot aggregation: turns a budget and its expenses into the read-model.
"""
from decimal import Decimal
from typing import Dict, List, Sequence
import logging

from tripledger.core.config import settings
from tripledger.core.errors import ConsistencyError
from tripledger.models.budget import Budget
from tripledger.models.expense import Expense
from tripledger.schemas.budget import (
    BudgetMemberResponse, BudgetResponse, BudgetRulesResponse,
    BudgetSnapshot, BudgetSummary, MemberBudgetSummary
)
from tripledger.schemas.expense import ExpenseResponse

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def to_budget_response(budget: Budget) -> BudgetResponse:
    """Map a Budget row (with members) to its response schema."""
    return BudgetResponse(
        id=budget.id,
        trip_id=budget.trip_id,
        created_by=budget.created_by,
        base_currency=budget.base_currency,
        base_budget_amount=budget.base_budget_amount,
        members=[BudgetMemberResponse.model_validate(m) for m in budget.members],
        rules=BudgetRulesResponse(
            allow_member_expense_creation=budget.allow_member_expense_creation,
            allow_member_contribution_edits=budget.allow_member_contribution_edits,
            allow_member_expense_edits=budget.allow_member_expense_edits,
        ),
        created_at=budget.created_at,
        updated_at=budget.updated_at,
    )


def to_expense_responses(expenses: Sequence[Expense]) -> List[ExpenseResponse]:
    return [ExpenseResponse.model_validate(e) for e in expenses]


def compute_snapshot(budget: BudgetResponse, expenses: Sequence[ExpenseResponse]) -> BudgetSnapshot:
    """
    Aggregate planned vs spent money per member and for the whole trip.

    Member summaries keep the budget's member order. ``target_delta`` is
    ``base_budget_amount - total_planned``: positive means the members have
    not yet committed enough to reach the target, negative means a buffer.

    Raises:
        ConsistencyError: If a split references a user who is not a budget
            member, or an expense's splits do not add up to its amount.
    """
    planned: Dict[str, Decimal] = {}
    spent: Dict[str, Decimal] = {}
    for member in budget.members:
        planned[member.user_id] = Decimal(member.planned_contribution)
        spent[member.user_id] = ZERO

    total_spent = ZERO
    total_split = ZERO
    for expense in expenses:
        expense_split = ZERO
        for split in expense.splits:
            if split.user_id not in spent:
                logger.error(
                    f"Expense {expense.id} on trip {budget.trip_id} splits to unknown user {split.user_id}"
                )
                raise ConsistencyError(
                    f"Expense {expense.id} references user {split.user_id} who is not a budget member",
                    field="splits"
                )
            spent[split.user_id] += split.amount
            expense_split += split.amount
        if abs(expense_split - expense.amount) > settings.MONEY_EPSILON:
            logger.error(
                f"Expense {expense.id} splits sum to {expense_split} but amount is {expense.amount}"
            )
            raise ConsistencyError(
                f"Expense {expense.id} splits do not add up to its amount",
                field="splits"
            )
        total_spent += expense.amount
        total_split += expense_split

    if abs(total_spent - total_split) > settings.MONEY_EPSILON:
        logger.error(f"Trip {budget.trip_id} total spent {total_spent} disagrees with split total {total_split}")
        raise ConsistencyError("Total spent disagrees with the sum of all splits")

    member_summaries = [
        MemberBudgetSummary(
            user_id=member.user_id,
            planned=planned[member.user_id],
            spent=spent[member.user_id],
            remaining=planned[member.user_id] - spent[member.user_id],
            is_past_member=member.is_past_member,
        )
        for member in budget.members
    ]

    total_planned = sum(planned.values(), ZERO)
    target = budget.base_budget_amount
    summary = BudgetSummary(
        total_planned=total_planned,
        total_spent=total_spent,
        remaining=total_planned - total_spent,
        base_budget_amount=target,
        target_delta=(target - total_planned) if target is not None else None,
    )

    return BudgetSnapshot(
        budget=budget,
        expenses=list(expenses),
        summary=summary,
        member_summaries=member_summaries,
    )
