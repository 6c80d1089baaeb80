"""
Expense store: persistence helpers for Expense and ExpenseSplit rows.
"""
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session, selectinload

from tripledger.db.base import _utcnow
from tripledger.models.budget import Budget
from tripledger.models.expense import Expense, ExpenseSplit
from tripledger.services.split_service import SplitLine


def list_expenses(trip_id: str, db: Session) -> List[Expense]:
    """All expenses of a trip, newest first."""
    return (
        db.query(Expense)
        .options(selectinload(Expense.splits))
        .filter(Expense.trip_id == trip_id)
        .order_by(Expense.date.desc(), Expense.id.desc())
        .all()
    )


def get_expense(expense_id: int, db: Session) -> Optional[Expense]:
    return (
        db.query(Expense)
        .options(selectinload(Expense.splits))
        .filter(Expense.id == expense_id)
        .first()
    )


def add_expense(
    budget: Budget,
    title: Optional[str],
    amount: Decimal,
    currency: str,
    category: Optional[str],
    paid_by: str,
    created_by: str,
    split_method: str,
    splits: Sequence[SplitLine],
    expense_date: date,
    notes: Optional[str],
    db: Session
) -> Expense:
    """Stage an expense together with its computed splits."""
    expense = Expense(
        budget_id=budget.id,
        trip_id=budget.trip_id,
        title=title,
        amount=amount,
        currency=currency,
        category=category,
        paid_by=paid_by,
        created_by=created_by,
        split_method=split_method,
        date=expense_date,
        notes=notes,
    )
    replace_splits(expense, splits)
    db.add(expense)
    db.flush()
    return expense


def replace_splits(expense: Expense, splits: Sequence[SplitLine]) -> None:
    """
    Swap the expense's split lines; orphaned rows are deleted on flush.

    Touching the parent row makes the flush issue a version-checked UPDATE on
    the expense, so a concurrent re-split is detected as a stale write.
    """
    expense.updated_at = _utcnow()
    expense.splits = [ExpenseSplit(user_id=line.user_id, amount=line.amount) for line in splits]


def delete_expense(expense: Expense, db: Session) -> None:
    db.delete(expense)
    db.flush()
