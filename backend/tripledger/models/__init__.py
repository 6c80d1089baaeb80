"""Models package - Import all models for SQLAlchemy registration."""
from tripledger.models.budget import Budget, BudgetMember, BudgetMemberRole
from tripledger.models.expense import Expense, ExpenseSplit

__all__ = [
    "Budget",
    "BudgetMember",
    "BudgetMemberRole",
    "Expense",
    "ExpenseSplit",
]
