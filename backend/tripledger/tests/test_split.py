"""
Tests for split calculation.
"""
import pytest
from decimal import Decimal
from tripledger.core.errors import ValidationError
from tripledger.services.split_service import (
    AllCurrentMembers, ExplicitParticipants, SplitMethod, SplitRoster,
    WeightedParticipants, compute_splits, distribute_evenly
)

ROSTER = SplitRoster(
    current_member_ids=("carol", "alice", "bob"),
    known_member_ids=frozenset({"alice", "bob", "carol", "dave"}),
)


def as_pairs(lines):
    return [(line.user_id, line.amount) for line in lines]


def test_equal_split_assigns_remainder_to_first_user():
    """Test 100 split three ways gives the extra cent to the first user id."""
    lines = compute_splits(Decimal("100.00"), SplitMethod.EQUAL, AllCurrentMembers(), ROSTER)
    assert as_pairs(lines) == [
        ("alice", Decimal("33.34")),
        ("bob", Decimal("33.33")),
        ("carol", Decimal("33.33")),
    ]
    assert sum(line.amount for line in lines) == Decimal("100.00")


def test_equal_split_ignores_participant_order():
    """Test equal splits are the same for any participant ordering."""
    first = compute_splits(100, "equal", ExplicitParticipants(("carol", "bob", "alice")), ROSTER)
    second = compute_splits(100, "equal", ExplicitParticipants(("alice", "carol", "bob")), ROSTER)
    assert first == second


def test_equal_split_all_current_members_skips_past_members():
    """Test the implicit participant set is only current members."""
    lines = compute_splits(90, SplitMethod.EQUAL, AllCurrentMembers(), ROSTER)
    assert [line.user_id for line in lines] == ["alice", "bob", "carol"]


def test_equal_split_may_include_past_member_explicitly():
    """Test past members can still be named explicitly."""
    lines = compute_splits(10, SplitMethod.EQUAL, ExplicitParticipants(("alice", "dave")), ROSTER)
    assert as_pairs(lines) == [("alice", Decimal("5.00")), ("dave", Decimal("5.00"))]


@pytest.mark.parametrize("amount", ["0.01", "0.05", "1.00", "200.00", "999.99", "12345.67"])
def test_split_sum_invariant_for_every_method(amount):
    """Test splits always add up exactly to the amount."""
    total = Decimal(amount)
    equal = compute_splits(total, SplitMethod.EQUAL, AllCurrentMembers(), ROSTER)
    percentage = compute_splits(
        total, SplitMethod.PERCENTAGE,
        WeightedParticipants((("alice", 33.33), ("bob", 33.33), ("carol", 33.34))),
        ROSTER
    )
    assert sum(l.amount for l in equal) == total
    assert sum(l.amount for l in percentage) == total
    assert all(l.amount >= 0 for l in equal + percentage)


def test_percentage_split_computes_shares():
    """Test percentage shares."""
    lines = compute_splits(
        200, SplitMethod.PERCENTAGE,
        WeightedParticipants((("bob", 25), ("alice", 75))),
        ROSTER
    )
    assert as_pairs(lines) == [("alice", Decimal("150.00")), ("bob", Decimal("50.00"))]


@pytest.mark.parametrize("percentages", [(50, 49.9), (50, 50.1), (60, 60)])
def test_percentage_split_rejects_bad_totals(percentages):
    """Test percentages must add up to 100."""
    shares = WeightedParticipants((("alice", percentages[0]), ("bob", percentages[1])))
    with pytest.raises(ValidationError) as exc_info:
        compute_splits(100, SplitMethod.PERCENTAGE, shares, ROSTER)
    assert exc_info.value.rule == "percentages_sum_to_100"


def test_percentage_split_accepts_sum_within_epsilon():
    """Test a total of 99.99 percent is accepted and still sums exactly."""
    shares = WeightedParticipants((("alice", 33.33), ("bob", 33.33), ("carol", 33.33)))
    lines = compute_splits(100, SplitMethod.PERCENTAGE, shares, ROSTER)
    assert sum(l.amount for l in lines) == Decimal("100.00")


def test_percentage_range_uses_unrounded_value():
    """Test a share just above 100 percent is rejected even though it rounds to 100."""
    with pytest.raises(ValidationError, match="cannot exceed 100"):
        compute_splits(100, SplitMethod.PERCENTAGE, WeightedParticipants((("alice", "100.004"),)), ROSTER)

    lines = compute_splits(
        90, SplitMethod.PERCENTAGE,
        WeightedParticipants((("alice", "33.333"), ("bob", "33.333"), ("carol", "33.334"))),
        ROSTER
    )
    assert as_pairs(lines) == [
        ("alice", Decimal("30.01")), ("bob", Decimal("29.99")), ("carol", Decimal("30.00"))
    ]


def test_custom_split_keeps_given_amounts():
    """Test custom splits pass through validated amounts."""
    lines = compute_splits(
        50, SplitMethod.CUSTOM,
        WeightedParticipants((("bob", "20.00"), ("alice", "30.00"))),
        ROSTER
    )
    assert as_pairs(lines) == [("alice", Decimal("30.00")), ("bob", Decimal("20.00"))]


def test_custom_split_rejects_mismatched_sum():
    """Test custom amounts must add up to the expense amount."""
    with pytest.raises(ValidationError) as exc_info:
        compute_splits(50, SplitMethod.CUSTOM, WeightedParticipants((("alice", 30), ("bob", 10))), ROSTER)
    assert exc_info.value.rule == "splits_sum_to_amount"


def test_custom_split_rejects_negative_share():
    """Test negative shares are rejected."""
    with pytest.raises(ValidationError):
        compute_splits(50, SplitMethod.CUSTOM, WeightedParticipants((("alice", 60), ("bob", -10))), ROSTER)


@pytest.mark.parametrize("amount", [0, -5, "abc", None])
def test_rejects_non_positive_or_invalid_amount(amount):
    """Test amount must be a positive number."""
    with pytest.raises(ValidationError) as exc_info:
        compute_splits(amount, SplitMethod.EQUAL, AllCurrentMembers(), ROSTER)
    assert exc_info.value.field == "amount"


def test_rejects_unknown_participant():
    """Test participants must be budget members."""
    with pytest.raises(ValidationError) as exc_info:
        compute_splits(10, SplitMethod.EQUAL, ExplicitParticipants(("alice", "mallory")), ROSTER)
    assert exc_info.value.rule == "participant_must_be_member"


def test_rejects_empty_and_duplicate_participants():
    """Test empty and duplicate participant lists are rejected."""
    with pytest.raises(ValidationError):
        compute_splits(10, SplitMethod.EQUAL, ExplicitParticipants(()), ROSTER)
    with pytest.raises(ValidationError):
        compute_splits(10, SplitMethod.EQUAL, ExplicitParticipants(("alice", "alice")), ROSTER)
    with pytest.raises(ValidationError):
        compute_splits(10, SplitMethod.PERCENTAGE, WeightedParticipants(()), ROSTER)


def test_rejects_wrong_participant_variant_and_method():
    """Test variants are tied to their methods."""
    with pytest.raises(ValidationError):
        compute_splits(10, SplitMethod.EQUAL, WeightedParticipants((("alice", 10),)), ROSTER)
    with pytest.raises(ValidationError):
        compute_splits(10, SplitMethod.CUSTOM, AllCurrentMembers(), ROSTER)
    with pytest.raises(ValidationError) as exc_info:
        compute_splits(10, "shares", AllCurrentMembers(), ROSTER)
    assert exc_info.value.field == "split_method"


def test_distribute_evenly_allows_zero_total():
    """Test zero totals seed zero contributions."""
    lines = distribute_evenly(Decimal("0.00"), ["bob", "alice"])
    assert as_pairs(lines) == [("alice", Decimal("0.00")), ("bob", Decimal("0.00"))]
