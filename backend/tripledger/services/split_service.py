"""
Split calculation for expenses.

Pure functions: no database access, no logging side effects beyond debug
output. Given identical inputs (in any participant order) the result is
identical, so retried requests produce the same splits.

Rounding rule: every computed share is rounded DOWN to the cent and the
leftover cents go to the participant whose ``user_id`` sorts first. Results
are always returned in ascending ``user_id`` order.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import FrozenSet, List, Sequence, Tuple, Union
import enum
import logging

from tripledger.core.config import settings
from tripledger.core.errors import ValidationError
from tripledger.core.utils import CENT, to_decimal, to_money

logger = logging.getLogger(__name__)

HUNDRED = Decimal(100)


class SplitMethod(str, enum.Enum):
    """How an expense is divided between participants."""
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    CUSTOM = "custom"


@dataclass(frozen=True)
class AllCurrentMembers:
    """Everyone who is currently on the trip."""


@dataclass(frozen=True)
class ExplicitParticipants:
    """A named subset of members sharing equally."""
    user_ids: Tuple[str, ...]


@dataclass(frozen=True)
class WeightedParticipants:
    """Per-member values: percentages or explicit amounts."""
    shares: Tuple[Tuple[str, Decimal], ...]


Participants = Union[AllCurrentMembers, ExplicitParticipants, WeightedParticipants]


@dataclass(frozen=True)
class SplitRoster:
    """Budget membership as seen by the calculator."""
    current_member_ids: Tuple[str, ...]
    known_member_ids: FrozenSet[str]


@dataclass(frozen=True)
class SplitLine:
    """A computed share of an expense."""
    user_id: str
    amount: Decimal


def parse_split_method(value) -> SplitMethod:
    """Coerce a raw split method into the enum."""
    try:
        return SplitMethod(value)
    except ValueError:
        allowed = ", ".join(m.value for m in SplitMethod)
        raise ValidationError(
            f"Invalid split method '{value}'. Expected one of: {allowed}",
            field="split_method"
        )


def _floor_cent(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_DOWN)


def _assign_remainder(total: Decimal, shares: List[Tuple[str, Decimal]]) -> List[SplitLine]:
    """Give the rounding remainder to the first participant by user_id."""
    ordered = sorted(shares, key=lambda share: share[0])
    remainder = total - sum((amount for _, amount in ordered), Decimal(0))
    lines = []
    for index, (user_id, amount) in enumerate(ordered):
        if index == 0:
            amount = amount + remainder
        lines.append(SplitLine(user_id=user_id, amount=amount))
    return lines


def distribute_evenly(total: Decimal, user_ids: Sequence[str]) -> List[SplitLine]:
    """
    Divide a non-negative total evenly across users with the standard
    remainder rule. Used for equal splits and for seeding planned
    contributions, where a zero total is allowed.
    """
    if not user_ids:
        raise ValidationError("At least one participant is required", field="participants")
    count = Decimal(len(user_ids))
    per_person = _floor_cent(total / count)
    return _assign_remainder(total, [(user_id, per_person) for user_id in user_ids])


def _check_known(user_ids: Sequence[str], roster: SplitRoster) -> None:
    seen = set()
    for user_id in user_ids:
        if not user_id:
            raise ValidationError("Participant user id is required", field="participants")
        if user_id in seen:
            raise ValidationError(f"Participant {user_id} is listed more than once", field="participants")
        if user_id not in roster.known_member_ids:
            raise ValidationError(
                f"User {user_id} is not a member of this budget",
                field="participants",
                rule="participant_must_be_member"
            )
        seen.add(user_id)


def _compute_equal(amount: Decimal, participants: Participants, roster: SplitRoster) -> List[SplitLine]:
    if isinstance(participants, AllCurrentMembers):
        user_ids = list(roster.current_member_ids)
        if not user_ids:
            raise ValidationError("No current members available for an equal split", field="participants")
    elif isinstance(participants, ExplicitParticipants):
        user_ids = list(participants.user_ids)
    else:
        raise ValidationError("Equal splits take a list of participants, not weighted shares", field="splits")
    if not user_ids:
        raise ValidationError("At least one participant is required", field="participants")
    _check_known(user_ids, roster)
    return distribute_evenly(amount, user_ids)


def _weighted_shares(participants: Participants, method: SplitMethod) -> List[Tuple[str, Decimal]]:
    """Percentages are kept as given; custom amounts are rounded to the cent."""
    if not isinstance(participants, WeightedParticipants):
        raise ValidationError(f"Splits are required for the {method.value} method", field="splits")
    if not participants.shares:
        raise ValidationError("At least one split entry is required", field="splits")
    shares = []
    for user_id, raw_value in participants.shares:
        value = to_decimal(raw_value) if method is SplitMethod.PERCENTAGE else to_money(raw_value)
        if value is None:
            raise ValidationError(f"Split value for {user_id} must be a number", field="splits")
        if value < 0:
            raise ValidationError(f"Split value for {user_id} cannot be negative", field="splits")
        shares.append((user_id, value))
    return shares


def _compute_percentage(amount: Decimal, participants: Participants, roster: SplitRoster) -> List[SplitLine]:
    shares = _weighted_shares(participants, SplitMethod.PERCENTAGE)
    _check_known([user_id for user_id, _ in shares], roster)
    for user_id, percent in shares:
        if percent > HUNDRED:
            raise ValidationError(f"Percentage for {user_id} cannot exceed 100", field="splits")
    total_percent = sum((percent for _, percent in shares), Decimal(0))
    if abs(total_percent - HUNDRED) > settings.MONEY_EPSILON:
        raise ValidationError(
            f"Split percentages must sum to 100 (got {total_percent})",
            field="splits",
            rule="percentages_sum_to_100"
        )
    computed = [(user_id, _floor_cent(amount * percent / HUNDRED)) for user_id, percent in shares]
    return _assign_remainder(amount, computed)


def _compute_custom(amount: Decimal, participants: Participants, roster: SplitRoster) -> List[SplitLine]:
    shares = _weighted_shares(participants, SplitMethod.CUSTOM)
    _check_known([user_id for user_id, _ in shares], roster)
    total = sum((value for _, value in shares), Decimal(0))
    if abs(total - amount) > settings.MONEY_EPSILON:
        raise ValidationError(
            f"Sum of split amounts ({total}) must equal the expense amount ({amount})",
            field="splits",
            rule="splits_sum_to_amount"
        )
    lines = _assign_remainder(amount, shares)
    if lines[0].amount < 0:
        raise ValidationError(f"Split value for {lines[0].user_id} cannot be negative", field="splits")
    return lines


def compute_splits(amount, method, participants: Participants, roster: SplitRoster) -> List[SplitLine]:
    """
    Compute validated per-member shares for an expense.

    Args:
        amount: Expense total; must be a positive number.
        method: ``SplitMethod`` or its string value.
        participants: ``AllCurrentMembers`` / ``ExplicitParticipants`` for equal,
            ``WeightedParticipants`` for percentage and custom.
        roster: Current and known (current or past) budget members.

    Returns:
        Split lines ordered by user id whose amounts sum exactly to ``amount``.

    Raises:
        ValidationError: On any invalid amount, method or participant set.
    """
    money = to_money(amount)
    if money is None:
        raise ValidationError("Amount must be a number", field="amount")
    if money <= 0:
        raise ValidationError("Amount must be greater than zero", field="amount")
    split_method = method if isinstance(method, SplitMethod) else parse_split_method(method)

    if split_method is SplitMethod.EQUAL:
        lines = _compute_equal(money, participants, roster)
    elif split_method is SplitMethod.PERCENTAGE:
        lines = _compute_percentage(money, participants, roster)
    else:
        lines = _compute_custom(money, participants, roster)

    logger.debug(f"Computed {split_method.value} split of {money}: {[(l.user_id, str(l.amount)) for l in lines]}")
    return lines
