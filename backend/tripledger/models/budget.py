"""
Budget models: one shared budget per trip plus its member commitments.
"""
from sqlalchemy import Column, String, Numeric, Boolean, DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship
from tripledger.db.base import BaseModel, _utcnow
import enum


class BudgetMemberRole(str, enum.Enum):
    """Role a member holds inside a budget."""
    CREATOR = "creator"
    MEMBER = "member"


class Budget(BaseModel):
    """Trip-level budget: currency, optional target and member rules."""
    __tablename__ = "budgets"

    trip_id = Column(String(64), nullable=False, unique=True, index=True)
    created_by = Column(String(64), nullable=False, index=True)
    base_currency = Column(String(3), nullable=False)
    base_budget_amount = Column(Numeric(15, 2), nullable=True)  # None means no target declared

    # Rules governing what non-creator members may do
    allow_member_expense_creation = Column(Boolean, default=True, nullable=False)
    allow_member_contribution_edits = Column(Boolean, default=True, nullable=False)
    allow_member_expense_edits = Column(Boolean, default=True, nullable=False)

    version = Column(Integer, nullable=False)

    # Relationships
    members = relationship(
        "BudgetMember",
        back_populates="budget",
        cascade="all, delete-orphan",
        order_by="BudgetMember.id",
    )
    expenses = relationship("Expense", back_populates="budget", cascade="all, delete-orphan")

    __mapper_args__ = {"version_id_col": version}

    def find_member(self, user_id: str):
        """Return the member record for a user, current or past."""
        for member in self.members:
            if member.user_id == user_id:
                return member
        return None


class BudgetMember(BaseModel):
    """A user's planned contribution to a trip budget."""
    __tablename__ = "budget_members"

    budget_id = Column(Integer, ForeignKey("budgets.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    planned_contribution = Column(Numeric(15, 2), nullable=False, default=0)
    role = Column(String(16), nullable=False, default=BudgetMemberRole.MEMBER.value)
    joined_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    is_past_member = Column(Boolean, default=False, nullable=False)  # Left the trip, kept for history

    version = Column(Integer, nullable=False)

    # Relationships
    budget = relationship("Budget", back_populates="members")

    __mapper_args__ = {"version_id_col": version}

    # One record per user per budget
    __table_args__ = (
        UniqueConstraint('budget_id', 'user_id', name='uq_budget_member'),
    )
