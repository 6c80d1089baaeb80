"""
Expense model for tracking spending.
"""
from sqlalchemy import Column, String, Numeric, Date, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from tripledger.db.base import BaseModel


class Expense(BaseModel):
    """Expense model representing a single spending event."""
    __tablename__ = "expenses"

    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=False, index=True)
    trip_id = Column(String(64), nullable=False, index=True)
    title = Column(String(200), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    category = Column(String(50), nullable=True)
    paid_by = Column(String(64), nullable=False, index=True)
    created_by = Column(String(64), nullable=False, index=True)  # May differ from paid_by
    split_method = Column(String(16), nullable=False)
    date = Column(Date, nullable=False, index=True)
    notes = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)

    # Relationships
    budget = relationship("Budget", back_populates="expenses")
    splits = relationship(
        "ExpenseSplit",
        back_populates="expense",
        cascade="all, delete-orphan",
        order_by="ExpenseSplit.id",
    )

    __mapper_args__ = {"version_id_col": version}


class ExpenseSplit(BaseModel):
    """One participant's share of an expense."""
    __tablename__ = "expense_splits"

    expense_id = Column(Integer, ForeignKey("expenses.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    amount = Column(Numeric(15, 2), nullable=False)

    # Relationships
    expense = relationship("Expense", back_populates="splits")
