"""
Budget store: persistence helpers for Budget and BudgetMember rows.

Functions here only stage changes on the session; committing is left to
the caller so a whole operation stays all-or-nothing.
"""
from decimal import Decimal
from typing import Dict, List, Optional, Sequence
import logging

from sqlalchemy.orm import Session, selectinload

from tripledger.models.budget import Budget, BudgetMember, BudgetMemberRole
from tripledger.services.membership_service import RosterMember

logger = logging.getLogger(__name__)


def get_budget_by_trip(trip_id: str, db: Session) -> Optional[Budget]:
    """Load the budget of a trip together with its members."""
    return (
        db.query(Budget)
        .options(selectinload(Budget.members))
        .filter(Budget.trip_id == trip_id)
        .first()
    )


def create_budget(
    trip_id: str,
    created_by: str,
    base_currency: str,
    base_budget_amount: Optional[Decimal],
    contributions: Dict[str, Decimal],
    member_ids: Sequence[str],
    db: Session
) -> Budget:
    """Stage a new budget with one member row per user id, in the given order."""
    budget = Budget(
        trip_id=trip_id,
        created_by=created_by,
        base_currency=base_currency,
        base_budget_amount=base_budget_amount,
    )
    for user_id in member_ids:
        budget.members.append(BudgetMember(
            user_id=user_id,
            planned_contribution=contributions.get(user_id, Decimal("0.00")),
            role=BudgetMemberRole.CREATOR.value if user_id == created_by else BudgetMemberRole.MEMBER.value,
            is_past_member=False,
        ))
    db.add(budget)
    db.flush()
    return budget


def set_base_budget_amount(budget: Budget, amount: Optional[Decimal]) -> None:
    budget.base_budget_amount = amount


def set_member_contribution(member: BudgetMember, amount: Decimal) -> None:
    member.planned_contribution = amount


def set_rules(
    budget: Budget,
    allow_member_expense_creation: Optional[bool] = None,
    allow_member_contribution_edits: Optional[bool] = None,
    allow_member_expense_edits: Optional[bool] = None
) -> None:
    """Update only the rules that were given."""
    if allow_member_expense_creation is not None:
        budget.allow_member_expense_creation = allow_member_expense_creation
    if allow_member_contribution_edits is not None:
        budget.allow_member_contribution_edits = allow_member_contribution_edits
    if allow_member_expense_edits is not None:
        budget.allow_member_expense_edits = allow_member_expense_edits


def sync_members_with_roster(budget: Budget, roster: List[RosterMember], db: Session) -> bool:
    """
    Align member flags with the trip roster.

    Members missing from the roster become past members; past members who
    are back on the roster are reactivated; new roster users join with a
    zero planned contribution. Member rows are never deleted.

    Returns:
        True when anything changed.
    """
    roster_ids = [m.user_id for m in roster]
    on_roster = set(roster_ids)
    changed = False

    for member in budget.members:
        is_past = member.user_id not in on_roster
        if member.is_past_member != is_past:
            member.is_past_member = is_past
            changed = True
            logger.info(
                f"Budget for trip {budget.trip_id}: user {member.user_id} "
                f"{'left the trip' if is_past else 'rejoined the trip'}"
            )

    known = {m.user_id for m in budget.members}
    for user_id in roster_ids:
        if user_id not in known:
            budget.members.append(BudgetMember(
                user_id=user_id,
                planned_contribution=Decimal("0.00"),
                role=BudgetMemberRole.MEMBER.value,
                is_past_member=False,
            ))
            known.add(user_id)
            changed = True
            logger.info(f"Budget for trip {budget.trip_id}: user {user_id} joined")

    if changed:
        db.flush()
    return changed
