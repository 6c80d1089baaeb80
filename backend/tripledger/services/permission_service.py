"""
Permission policy for budget mutations.

The engine answers yes/no questions only. Denials become
``AuthorizationError`` at the service boundary via ``require``.
"""
from typing import Optional
import enum

from tripledger.core.errors import AuthorizationError, ValidationError
from tripledger.models.budget import Budget
from tripledger.models.expense import Expense


class BudgetRole(str, enum.Enum):
    """Relationship of a user to a budget."""
    CREATOR = "creator"
    CURRENT_MEMBER = "current_member"
    PAST_MEMBER = "past_member"
    NON_MEMBER = "non_member"


class PermissionEngine:
    """Stateless policy evaluator driven by the budget's creator, members and rules."""

    def resolve_role(self, actor: str, budget: Budget) -> BudgetRole:
        """
        Classify the actor. Leaving the trip outranks being the creator:
        a creator who left keeps only read-only history like any past member.
        """
        self._check_input(actor, budget)
        member = budget.find_member(actor)
        if member is not None and member.is_past_member:
            return BudgetRole.PAST_MEMBER
        if budget.created_by == actor:
            return BudgetRole.CREATOR
        if member is not None:
            return BudgetRole.CURRENT_MEMBER
        return BudgetRole.NON_MEMBER

    def can_view_budget(self, actor: str, budget: Budget) -> bool:
        role = self.resolve_role(actor, budget)
        return role in (BudgetRole.CREATOR, BudgetRole.CURRENT_MEMBER)

    def can_add_expense(self, actor: str, budget: Budget) -> bool:
        role = self.resolve_role(actor, budget)
        if role is BudgetRole.CREATOR:
            return True
        return role is BudgetRole.CURRENT_MEMBER and bool(budget.allow_member_expense_creation)

    def can_edit_base_budget(self, actor: str, budget: Budget) -> bool:
        return self.resolve_role(actor, budget) is BudgetRole.CREATOR

    def can_edit_rules(self, actor: str, budget: Budget) -> bool:
        return self.resolve_role(actor, budget) is BudgetRole.CREATOR

    def can_edit_contribution(self, actor: str, target_user_id: str, budget: Budget) -> bool:
        if not target_user_id:
            raise ValidationError("Target user id is required", field="user_id")
        role = self.resolve_role(actor, budget)
        if role is BudgetRole.CREATOR:
            return True
        return (
            role is BudgetRole.CURRENT_MEMBER
            and actor == target_user_id
            and bool(budget.allow_member_contribution_edits)
        )

    def can_edit_or_delete_expense(self, actor: str, expense: Expense, budget: Budget) -> bool:
        if expense is None:
            raise ValidationError("Expense reference is required", field="expense_id")
        if expense.budget_id is not None and budget.id is not None and expense.budget_id != budget.id:
            raise ValidationError("Expense does not belong to this budget", field="expense_id")
        role = self.resolve_role(actor, budget)
        if role is BudgetRole.CREATOR:
            return True
        return (
            role is BudgetRole.CURRENT_MEMBER
            and expense.created_by == actor
            and bool(budget.allow_member_expense_edits)
        )

    @staticmethod
    def _check_input(actor: Optional[str], budget: Optional[Budget]) -> None:
        if not actor:
            raise ValidationError("Acting user id is required", field="actor")
        if budget is None:
            raise ValidationError("Budget reference is required", field="budget")


def require(allowed: bool, message: str, rule: Optional[str] = None) -> None:
    """Translate a denied permission into an AuthorizationError."""
    if not allowed:
        raise AuthorizationError(message, rule=rule)
