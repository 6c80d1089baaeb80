"""
Budget service: permission-checked mutations that always answer with a
freshly computed snapshot.

Every operation runs as one unit of work: sync the roster, validate, write,
aggregate, commit. Write collisions detected by the row version counters
roll the unit back and run it again, up to ``MAX_WRITE_ATTEMPTS`` times.
"""
from datetime import date
from decimal import Decimal
from typing import Callable, Dict, List, Optional
import enum
import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from tripledger.core.config import settings
from tripledger.core.errors import ConflictError, NotFoundError, ValidationError
from tripledger.core.utils import to_money
from tripledger.models.budget import Budget, BudgetMember
from tripledger.models.expense import Expense, ExpenseSplit
from tripledger.schemas.budget import (
    BudgetCreate, BudgetMemberUpdate, BudgetRulesUpdate, BudgetSnapshot, BudgetUpdate
)
from tripledger.schemas.expense import ExpenseCreate, ExpenseUpdate, SplitInput
from tripledger.services import budget_store, expense_store
from tripledger.services.membership_service import MembershipDirectory
from tripledger.services.permission_service import PermissionEngine, require
from tripledger.services.snapshot_service import compute_snapshot, to_budget_response, to_expense_responses
from tripledger.services.split_service import (
    AllCurrentMembers, ExplicitParticipants, Participants, SplitMethod, SplitRoster,
    WeightedParticipants, compute_splits, distribute_evenly, parse_split_method
)

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_CATEGORY_LENGTH = 50


class CloneMode(str, enum.Enum):
    """What a budget clone carries over."""
    TEMPLATE = "template"  # members and rules, planned contributions reset to 0
    PLANNING = "planning"  # plus planned contributions and target
    FULL_HISTORY = "full_history"  # plus every expense


def _require_money(value, field: str, allow_zero: bool = True) -> Decimal:
    money = to_money(value)
    if money is None:
        raise ValidationError(f"{field} must be a number", field=field)
    if money < 0 or (money == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "greater than zero"
        raise ValidationError(f"{field} must be {qualifier}", field=field)
    return money


def _normalize_currency(value: Optional[str]) -> str:
    currency = (value or "").strip().upper()
    if len(currency) != 3 or not currency.isalpha():
        raise ValidationError("Currency must be a 3-letter ISO code", field="base_currency")
    return currency


def _clean_text(value: Optional[str], field: str, max_length: int, required: bool = False) -> Optional[str]:
    text = value.strip() if value is not None else None
    if not text:
        if required:
            raise ValidationError(f"{field} is required", field=field)
        return None
    if len(text) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters", field=field)
    return text


def _is_unique_violation(error: IntegrityError) -> bool:
    """Racing inserts of a budget or member row; other integrity errors are defects."""
    message = str(error.orig).lower()
    return "unique" in message or "duplicate entry" in message


def _split_roster(budget: Budget) -> SplitRoster:
    return SplitRoster(
        current_member_ids=tuple(m.user_id for m in budget.members if not m.is_past_member),
        known_member_ids=frozenset(m.user_id for m in budget.members),
    )


def _build_participants(
    method: SplitMethod,
    participant_ids: Optional[List[str]],
    splits: Optional[List[SplitInput]]
) -> Participants:
    """Turn DTO fields into the explicit participant variant for a method."""
    if method is SplitMethod.EQUAL:
        if splits:
            raise ValidationError("Equal splits take participants, not split values", field="splits")
        if not participant_ids:
            return AllCurrentMembers()
        return ExplicitParticipants(user_ids=tuple(participant_ids))
    if participant_ids:
        raise ValidationError(
            f"The {method.value} method takes split values, not a participant list",
            field="participants"
        )
    if not splits:
        raise ValidationError(f"Splits are required for the {method.value} method", field="splits")
    return WeightedParticipants(shares=tuple((s.user_id, s.value) for s in splits))


class BudgetService:
    """Orchestrates permission checks, split computation and persistence."""

    def __init__(
        self,
        db: Session,
        directory: MembershipDirectory,
        permissions: Optional[PermissionEngine] = None,
        max_attempts: Optional[int] = None
    ):
        self.db = db
        self.directory = directory
        self.permissions = permissions or PermissionEngine()
        self.max_attempts = max_attempts or settings.MAX_WRITE_ATTEMPTS

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------

    def _run(self, description: str, operation: Callable[[], BudgetSnapshot]) -> BudgetSnapshot:
        """Run an operation atomically, retrying on write collisions."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                snapshot = operation()
                self.db.commit()
                return snapshot
            except (StaleDataError, IntegrityError) as e:
                self.db.rollback()
                if isinstance(e, IntegrityError) and not _is_unique_violation(e):
                    logger.error(f"Integrity error during {description}: {e.orig}")
                    raise
                logger.warning(
                    f"Write collision during {description} (attempt {attempt}/{self.max_attempts}): {e}"
                )
            except Exception:
                self.db.rollback()
                raise
        raise ConflictError(
            f"Concurrent update conflict during {description}, please retry",
            rule="optimistic_concurrency"
        )

    def _load_budget(self, trip_id: str) -> Budget:
        """Fetch a trip's budget and align its members with the live roster."""
        budget = budget_store.get_budget_by_trip(trip_id, self.db)
        if not budget:
            raise NotFoundError("Budget not found", field="trip_id")
        roster = self.directory.get_current_members(trip_id)
        budget_store.sync_members_with_roster(budget, roster, self.db)
        return budget

    def _load_expense(self, expense_id: int) -> Expense:
        expense = expense_store.get_expense(expense_id, self.db)
        if not expense:
            raise NotFoundError("Expense not found", field="expense_id")
        return expense

    def _snapshot(self, budget: Budget) -> BudgetSnapshot:
        self.db.flush()
        expenses = expense_store.list_expenses(budget.trip_id, self.db)
        return compute_snapshot(to_budget_response(budget), to_expense_responses(expenses))

    # ------------------------------------------------------------------
    # Budget operations
    # ------------------------------------------------------------------

    def get_budget_snapshot(self, trip_id: str, actor: str) -> BudgetSnapshot:
        """Current snapshot of a trip budget for a creator or current member."""
        def operation():
            budget = self._load_budget(trip_id)
            require(self.permissions.can_view_budget(actor, budget), "Unauthorized to view budget", rule="view")
            return self._snapshot(budget)

        return self._run("get budget snapshot", operation)

    def create_budget(self, trip_id: str, actor: str, dto: BudgetCreate) -> BudgetSnapshot:
        """
        Create the trip's budget, seeding members from the trip roster.

        A given ``total_budget_amount`` becomes the target and is split evenly
        into planned contributions (leftover cents to the first user id).
        """
        base_currency = _normalize_currency(dto.base_currency or settings.DEFAULT_CURRENCY)
        total = None
        if dto.total_budget_amount is not None:
            total = _require_money(dto.total_budget_amount, "total_budget_amount")

        def operation():
            if budget_store.get_budget_by_trip(trip_id, self.db):
                raise ConflictError("Budget already exists for this trip", field="trip_id")

            roster = self.directory.get_current_members(trip_id)
            roster_ids = [m.user_id for m in roster]
            require(actor in roster_ids, "Only trip members can create a budget", rule="create_budget")
            creator_ids = [m.user_id for m in roster if m.is_creator]
            require(
                not creator_ids or actor in creator_ids,
                "Only the trip creator can create the budget",
                rule="create_budget"
            )

            contributions: Dict[str, Decimal] = {}
            if total is not None:
                contributions = {line.user_id: line.amount for line in distribute_evenly(total, roster_ids)}

            budget = budget_store.create_budget(
                trip_id=trip_id,
                created_by=actor,
                base_currency=base_currency,
                base_budget_amount=total,
                contributions=contributions,
                member_ids=roster_ids,
                db=self.db
            )
            logger.info(f"Created budget for trip {trip_id} by {actor} ({base_currency}, target {total})")
            return self._snapshot(budget)

        return self._run("create budget", operation)

    def update_base_budget(self, trip_id: str, actor: str, dto: BudgetUpdate) -> BudgetSnapshot:
        """Set or clear (``None``) the trip target. Contributions are left as they are."""
        new_amount = None
        if dto.base_budget_amount is not None:
            new_amount = _require_money(dto.base_budget_amount, "base_budget_amount")
        touched = "base_budget_amount" in dto.model_fields_set

        def operation():
            budget = self._load_budget(trip_id)
            require(
                self.permissions.can_edit_base_budget(actor, budget),
                "Only the budget creator can update the base budget",
                rule="edit_base_budget"
            )
            if touched:
                budget_store.set_base_budget_amount(budget, new_amount)
                logger.info(f"Base budget for trip {trip_id} set to {new_amount} by {actor}")
            return self._snapshot(budget)

        return self._run("update base budget", operation)

    def update_member_contribution(
        self,
        trip_id: str,
        actor: str,
        user_id: str,
        dto: BudgetMemberUpdate
    ) -> BudgetSnapshot:
        """Change one member's planned contribution."""
        def operation():
            budget = self._load_budget(trip_id)
            require(
                self.permissions.can_edit_contribution(actor, user_id, budget),
                "Not allowed to update this member's contribution",
                rule="edit_contribution"
            )
            member: Optional[BudgetMember] = budget.find_member(user_id)
            if member is None:
                raise NotFoundError("Budget member not found", field="user_id")
            amount = _require_money(dto.planned_contribution, "planned_contribution")
            budget_store.set_member_contribution(member, amount)
            logger.info(f"Planned contribution of {user_id} on trip {trip_id} set to {amount} by {actor}")
            return self._snapshot(budget)

        return self._run("update member contribution", operation)

    def update_rules(self, trip_id: str, actor: str, dto: BudgetRulesUpdate) -> BudgetSnapshot:
        """Toggle what non-creator members may do."""
        def operation():
            budget = self._load_budget(trip_id)
            require(
                self.permissions.can_edit_rules(actor, budget),
                "Only the budget creator can change budget rules",
                rule="edit_rules"
            )
            budget_store.set_rules(
                budget,
                allow_member_expense_creation=dto.allow_member_expense_creation,
                allow_member_contribution_edits=dto.allow_member_contribution_edits,
                allow_member_expense_edits=dto.allow_member_expense_edits,
            )
            return self._snapshot(budget)

        return self._run("update budget rules", operation)

    def clone_budget(self, source_trip_id: str, target_trip_id: str, actor: str, mode: str = "planning") -> BudgetSnapshot:
        """
        Copy a budget into another trip. The cloning user becomes the creator;
        everyone else is a plain member. Returns the new budget's snapshot.
        """
        try:
            clone_mode = CloneMode(mode)
        except ValueError:
            raise ValidationError(f"Invalid clone mode '{mode}'", field="mode")
        if source_trip_id == target_trip_id:
            raise ValidationError("Cannot clone a budget into the same trip", field="target_trip_id")

        def operation():
            source = self._load_budget(source_trip_id)
            require(self.permissions.can_view_budget(actor, source), "Unauthorized to view budget", rule="view")
            if budget_store.get_budget_by_trip(target_trip_id, self.db):
                raise ConflictError("Budget already exists for the target trip", field="target_trip_id")

            target_roster = self.directory.get_current_members(target_trip_id)
            require(
                actor in [m.user_id for m in target_roster],
                "Only members of the target trip can clone a budget into it",
                rule="clone_budget"
            )

            member_ids = [m.user_id for m in source.members]
            if actor not in member_ids:
                member_ids.insert(0, actor)
            contributions: Dict[str, Decimal] = {}
            target_amount = None
            if clone_mode is not CloneMode.TEMPLATE:
                contributions = {m.user_id: m.planned_contribution for m in source.members}
                target_amount = source.base_budget_amount

            clone = budget_store.create_budget(
                trip_id=target_trip_id,
                created_by=actor,
                base_currency=source.base_currency,
                base_budget_amount=target_amount,
                contributions=contributions,
                member_ids=member_ids,
                db=self.db
            )
            budget_store.set_rules(
                clone,
                allow_member_expense_creation=source.allow_member_expense_creation,
                allow_member_contribution_edits=source.allow_member_contribution_edits,
                allow_member_expense_edits=source.allow_member_expense_edits,
            )

            if clone_mode is CloneMode.FULL_HISTORY:
                for expense in expense_store.list_expenses(source_trip_id, self.db):
                    copy = Expense(
                        budget_id=clone.id,
                        trip_id=target_trip_id,
                        title=expense.title,
                        amount=expense.amount,
                        currency=expense.currency,
                        category=expense.category,
                        paid_by=expense.paid_by,
                        created_by=expense.created_by,
                        split_method=expense.split_method,
                        date=expense.date,
                        notes=expense.notes,
                        splits=[ExpenseSplit(user_id=s.user_id, amount=s.amount) for s in expense.splits],
                    )
                    self.db.add(copy)

            budget_store.sync_members_with_roster(clone, target_roster, self.db)
            logger.info(
                f"Cloned budget of trip {source_trip_id} into trip {target_trip_id} "
                f"by {actor} ({clone_mode.value})"
            )
            return self._snapshot(clone)

        return self._run("clone budget", operation)

    # ------------------------------------------------------------------
    # Expense operations
    # ------------------------------------------------------------------

    def create_expense(self, trip_id: str, actor: str, dto: ExpenseCreate) -> BudgetSnapshot:
        """
        Record an expense. ``split_method`` is required; ``paid_by`` defaults to
        the actor and an equal split with no participant list covers every
        current member.
        """
        if not dto.split_method:
            raise ValidationError("Split method is required", field="split_method")
        method = parse_split_method(dto.split_method)
        amount = _require_money(dto.amount, "amount", allow_zero=False)
        title = _clean_text(dto.title, "title", MAX_TITLE_LENGTH, required=True)
        category = _clean_text(dto.category, "category", MAX_CATEGORY_LENGTH)
        participants = _build_participants(method, dto.participants, dto.splits)

        def operation():
            budget = self._load_budget(trip_id)
            require(
                self.permissions.can_add_expense(actor, budget),
                "Not allowed to add expenses to this budget",
                rule="add_expense"
            )

            currency = self._check_currency(budget, dto.currency)
            paid_by = dto.paid_by or actor
            self._check_member(budget, paid_by, "paid_by")
            splits = compute_splits(amount, method, participants, _split_roster(budget))

            expense = expense_store.add_expense(
                budget=budget,
                title=title,
                amount=amount,
                currency=currency,
                category=category,
                paid_by=paid_by,
                created_by=actor,
                split_method=method.value,
                splits=splits,
                expense_date=dto.date or date.today(),
                notes=dto.notes,
                db=self.db
            )
            logger.info(f"Expense {expense.id} ({amount} {currency}) created on trip {trip_id} by {actor}")
            return self._snapshot(budget)

        return self._run("create expense", operation)

    def update_expense(self, expense_id: int, actor: str, dto: ExpenseUpdate) -> BudgetSnapshot:
        """
        Partially update an expense.

        Splits are recomputed when the amount, method, participants or split
        values change. An equal split with no new participant list keeps its
        previous participants; an empty list means every current member.
        Percentage and custom splits need new split values when recomputed.
        """
        fields = dto.model_fields_set
        new_amount = None
        if "amount" in fields and dto.amount is not None:
            new_amount = _require_money(dto.amount, "amount", allow_zero=False)
        new_method = None
        if "split_method" in fields and dto.split_method is not None:
            new_method = parse_split_method(dto.split_method)
        new_title = None
        if "title" in fields:
            new_title = _clean_text(dto.title, "title", MAX_TITLE_LENGTH, required=True)
        new_category = None
        if "category" in fields:
            new_category = _clean_text(dto.category, "category", MAX_CATEGORY_LENGTH)
        resplit = (
            new_amount is not None
            or new_method is not None
            or dto.participants is not None
            or dto.splits is not None
        )

        def operation():
            expense = self._load_expense(expense_id)
            budget = self._load_budget(expense.trip_id)
            require(
                self.permissions.can_edit_or_delete_expense(actor, expense, budget),
                "Not allowed to edit this expense",
                rule="edit_expense"
            )

            if "currency" in fields and dto.currency is not None:
                self._check_currency(budget, dto.currency)
            if "paid_by" in fields and dto.paid_by is not None:
                self._check_member(budget, dto.paid_by, "paid_by")

            splits = None
            method = new_method or SplitMethod(expense.split_method)
            amount = new_amount if new_amount is not None else expense.amount
            if resplit:
                participants = self._participants_for_update(expense, method, dto)
                splits = compute_splits(amount, method, participants, _split_roster(budget))

            # Everything is validated, apply the changes
            if new_amount is not None:
                expense.amount = new_amount
            if new_method is not None:
                expense.split_method = new_method.value
            if splits is not None:
                expense_store.replace_splits(expense, splits)
            if "title" in fields:
                expense.title = new_title
            if "category" in fields:
                expense.category = new_category
            if "paid_by" in fields and dto.paid_by is not None:
                expense.paid_by = dto.paid_by
            if "date" in fields and dto.date is not None:
                expense.date = dto.date
            if "notes" in fields:
                expense.notes = dto.notes

            logger.info(f"Expense {expense_id} updated by {actor}")
            return self._snapshot(budget)

        return self._run("update expense", operation)

    def delete_expense(self, expense_id: int, actor: str) -> BudgetSnapshot:
        """Remove an expense and its splits."""
        def operation():
            expense = self._load_expense(expense_id)
            budget = self._load_budget(expense.trip_id)
            require(
                self.permissions.can_edit_or_delete_expense(actor, expense, budget),
                "Not allowed to delete this expense",
                rule="delete_expense"
            )
            expense_store.delete_expense(expense, self.db)
            logger.info(f"Expense {expense_id} deleted by {actor}")
            return self._snapshot(budget)

        return self._run("delete expense", operation)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _check_currency(budget: Budget, currency: Optional[str]) -> str:
        """Expenses are recorded in the budget currency; nothing is converted."""
        if currency is None:
            return budget.base_currency
        normalized = currency.strip().upper()
        if normalized != budget.base_currency:
            raise ValidationError(
                f"Expense currency must be the budget currency {budget.base_currency}",
                field="currency",
                rule="single_currency"
            )
        return normalized

    @staticmethod
    def _check_member(budget: Budget, user_id: str, field: str) -> None:
        if budget.find_member(user_id) is None:
            raise ValidationError(f"User {user_id} is not a member of this budget", field=field)

    @staticmethod
    def _participants_for_update(expense: Expense, method: SplitMethod, dto: ExpenseUpdate) -> Participants:
        if dto.participants is not None or dto.splits is not None:
            return _build_participants(method, dto.participants, dto.splits)
        if method is SplitMethod.EQUAL:
            return ExplicitParticipants(user_ids=tuple(s.user_id for s in expense.splits))
        raise ValidationError(
            f"Provide split values when recomputing a {method.value} split",
            field="splits"
        )
