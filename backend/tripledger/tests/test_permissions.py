"""
Tests for the budget permission policy.
"""
import pytest
from tripledger.core.errors import AuthorizationError, ValidationError
from tripledger.models.budget import Budget, BudgetMember
from tripledger.models.expense import Expense
from tripledger.services.permission_service import BudgetRole, PermissionEngine, require

engine = PermissionEngine()


def make_budget(**rules):
    budget = Budget(
        trip_id="trip-1",
        created_by="creator",
        base_currency="EUR",
        allow_member_expense_creation=rules.get("allow_member_expense_creation", True),
        allow_member_contribution_edits=rules.get("allow_member_contribution_edits", True),
        allow_member_expense_edits=rules.get("allow_member_expense_edits", True),
    )
    budget.members = [
        BudgetMember(user_id="creator", is_past_member=False),
        BudgetMember(user_id="member", is_past_member=False),
        BudgetMember(user_id="other", is_past_member=False),
        BudgetMember(user_id="past", is_past_member=True),
    ]
    return budget


def expense_by(user_id):
    return Expense(trip_id="trip-1", created_by=user_id, paid_by=user_id)


@pytest.mark.parametrize("actor, role", [
    ("creator", BudgetRole.CREATOR),
    ("member", BudgetRole.CURRENT_MEMBER),
    ("past", BudgetRole.PAST_MEMBER),
    ("stranger", BudgetRole.NON_MEMBER),
])
def test_resolve_role(actor, role):
    """Test every relationship to the budget is classified."""
    assert engine.resolve_role(actor, make_budget()) is role


# actor, add expense, edit base budget, edit own contribution,
# edit others' contribution, edit own expense, edit others' expense
MATRIX = [
    ("creator", True, True, True, True, True, True),
    ("member", True, False, True, False, True, False),
    ("past", False, False, False, False, False, False),
    ("stranger", False, False, False, False, False, False),
]


@pytest.mark.parametrize("actor, add, base, own_contrib, other_contrib, own_expense, other_expense", MATRIX)
def test_permission_matrix(actor, add, base, own_contrib, other_contrib, own_expense, other_expense):
    """Test the permission table for each role and action."""
    budget = make_budget()
    assert engine.can_add_expense(actor, budget) is add
    assert engine.can_edit_base_budget(actor, budget) is base
    assert engine.can_edit_contribution(actor, actor, budget) is own_contrib
    assert engine.can_edit_contribution(actor, "other", budget) is other_contrib
    assert engine.can_edit_or_delete_expense(actor, expense_by(actor), budget) is own_expense
    assert engine.can_edit_or_delete_expense(actor, expense_by("other"), budget) is other_expense


def test_rules_restrict_members_but_not_creator():
    """Test disabled rules only affect non-creator members."""
    budget = make_budget(
        allow_member_expense_creation=False,
        allow_member_contribution_edits=False,
        allow_member_expense_edits=False,
    )
    assert engine.can_add_expense("member", budget) is False
    assert engine.can_edit_contribution("member", "member", budget) is False
    assert engine.can_edit_or_delete_expense("member", expense_by("member"), budget) is False
    assert engine.can_add_expense("creator", budget) is True
    assert engine.can_edit_contribution("creator", "member", budget) is True
    assert engine.can_edit_or_delete_expense("creator", expense_by("member"), budget) is True


def test_creator_who_left_is_treated_as_past_member():
    """Test leaving the trip removes the creator's mutation rights."""
    budget = make_budget()
    budget.members[0].is_past_member = True
    assert engine.resolve_role("creator", budget) is BudgetRole.PAST_MEMBER
    assert engine.can_edit_base_budget("creator", budget) is False


def test_view_and_rules_permissions():
    """Test view and rules checks."""
    budget = make_budget()
    assert engine.can_view_budget("member", budget) is True
    assert engine.can_view_budget("stranger", budget) is False
    assert engine.can_edit_rules("creator", budget) is True
    assert engine.can_edit_rules("member", budget) is False


def test_malformed_input_raises_validation_error():
    """Test missing references raise instead of returning False."""
    with pytest.raises(ValidationError):
        engine.can_add_expense("", make_budget())
    with pytest.raises(ValidationError):
        engine.can_add_expense("member", None)
    with pytest.raises(ValidationError):
        engine.can_edit_or_delete_expense("member", None, make_budget())


def test_require_raises_authorization_error():
    """Test denials become AuthorizationError at the boundary."""
    require(True, "allowed")
    with pytest.raises(AuthorizationError) as exc_info:
        require(False, "denied", rule="add_expense")
    assert exc_info.value.rule == "add_expense"
