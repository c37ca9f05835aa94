"""
Splitter Module

This module handles the expense splitting logic for the group expense
splitter application.

Features:
    - Equal splitting among participants
    - Exact per-member amounts
    - Percentage-based splitting
    - Cent-precise rounding (splits always sum to the expense amount)

Data Model:
    Input:
        - amount: Decimal | int | float | str (must be > 0, at most 2 decimals)
        - policy: string ("equal", "exact", "percentage")
        - participants: ordered list of member_ids
        - custom_inputs: dict member_id -> amount (exact) or percentage

    Output - list of split rows, in participant order:
        - member_id: string
        - amount: Decimal (owed amount, 2 decimal places)
        - percentage: Decimal or None

Functions:
    compute_splits: Compute each participant's owed share of an expense.
    to_decimal: Parse a money-like value into a Decimal.
"""

import logging
from decimal import Decimal, InvalidOperation, ROUND_DOWN, ROUND_HALF_UP
from typing import Optional

from errors import ValidationError

logger = logging.getLogger(__name__)


SPLIT_POLICIES = ("equal", "exact", "percentage")

CENT = Decimal("0.01")
HUNDRED = Decimal("100")

# Tolerance for caller-supplied sums (exact amounts, percentages)
EPSILON = Decimal("0.01")


def to_decimal(value, field_name: str = "amount") -> Decimal:
    """
    Parse a money-like value into a Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.1") rather than its
    binary expansion.

    Raises:
        ValidationError: If the value is not a finite number.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got: {value}", "invalid_number")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError(f"{field_name} must be a number, got: {value}", "invalid_number")
    if not result.is_finite():
        raise ValidationError(f"{field_name} must be a finite number, got: {value}", "invalid_number")
    return result


def _validate_amount(amount) -> Decimal:
    amount = to_decimal(amount, "amount")
    if amount <= 0:
        raise ValidationError(f"amount must be greater than zero, got: {amount}", "non_positive_amount")

    # Quantizing needs the cent value to fit the decimal context precision
    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation:
        raise ValidationError(f"amount is too large, got: {amount}", "amount_too_large")

    if amount != quantized:
        raise ValidationError(
            f"amount must have at most two decimal places, got: {amount}", "amount_precision"
        )
    return quantized


def _validate_participants(participants: list) -> list:
    if not participants:
        raise ValidationError("participants must be a non-empty list of member IDs", "empty_participants")
    seen = set()
    for member_id in participants:
        if member_id in seen:
            raise ValidationError(f"participant '{member_id}' is listed more than once", "duplicate_participant")
        seen.add(member_id)
    return list(participants)


def _validate_custom_inputs(participants: list, custom_inputs: Optional[dict], label: str) -> dict:
    """Check that custom_inputs covers exactly the participants, with non-negative values."""
    if not custom_inputs:
        raise ValidationError(f"{label} are required for this split policy", "missing_inputs")

    # Every participant needs an input, and only participants may have one
    missing = [m for m in participants if m not in custom_inputs]
    if missing:
        raise ValidationError(f"{label} missing for participants: {missing}", "missing_inputs")

    extra = [m for m in custom_inputs if m not in participants]
    if extra:
        raise ValidationError(f"{label} given for non-participants: {extra}", "unexpected_inputs")

    values = {}
    for member_id in participants:
        value = to_decimal(custom_inputs[member_id], f"{label} for '{member_id}'")
        if value < 0:
            raise ValidationError(
                f"{label} for '{member_id}' must not be negative, got: {value}", "negative_amount"
            )
        values[member_id] = value
    return values


def _to_cents(amount: Decimal) -> int:
    return int(amount * 100)


def _from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / HUNDRED).quantize(CENT)


def _split_equal(amount: Decimal, participants: list) -> list[dict]:
    """
    Split with cent precision.

    Algorithm:
        1. Convert to cents
        2. Base share = cents // N
        3. First (cents % N) participants get one extra cent
    """
    total_cents = _to_cents(amount)
    base, remainder = divmod(total_cents, len(participants))

    return [
        {
            "member_id": member_id,
            "amount": _from_cents(base + 1 if i < remainder else base),
            "percentage": None
        }
        for i, member_id in enumerate(participants)
    ]


def _split_exact(amount: Decimal, participants: list, custom_inputs: dict) -> list[dict]:
    amounts = _validate_custom_inputs(participants, custom_inputs, "exact amounts")

    # Provided amounts must add up to the expense amount
    provided = sum(amounts.values(), Decimal("0"))
    if abs(provided - amount) > EPSILON:
        raise ValidationError(
            f"exact amounts sum to {provided}, expected {amount}", "sum_mismatch"
        )

    # Round each share to cents
    shares = {m: a.quantize(CENT, rounding=ROUND_HALF_UP) for m, a in amounts.items()}

    # Residual within tolerance goes to the largest share (first on ties)
    residual = amount - sum(shares.values(), Decimal("0"))
    if residual:
        target = max(participants, key=lambda m: (shares[m], -participants.index(m)))
        shares[target] += residual

    return [
        {"member_id": m, "amount": shares[m], "percentage": None}
        for m in participants
    ]


def _split_percentage(amount: Decimal, participants: list, custom_inputs: dict) -> list[dict]:
    percentages = _validate_custom_inputs(participants, custom_inputs, "percentages")

    total_pct = sum(percentages.values(), Decimal("0"))
    if abs(total_pct - HUNDRED) > EPSILON:
        raise ValidationError(
            f"percentages sum to {total_pct}, expected 100", "sum_mismatch"
        )

    # Floor every share to a cent, then hand out leftover cents in order
    total_cents = _to_cents(amount)
    cents = {
        m: int((Decimal(total_cents) * pct / total_pct).to_integral_value(rounding=ROUND_DOWN))
        for m, pct in percentages.items()
    }
    leftover = total_cents - sum(cents.values())
    for member_id in participants[:leftover]:
        cents[member_id] += 1

    return [
        {"member_id": m, "amount": _from_cents(cents[m]), "percentage": percentages[m]}
        for m in participants
    ]


def compute_splits(
    amount,
    policy: str,
    participants: list[str],
    custom_inputs: Optional[dict] = None
) -> list[dict]:
    """
    Compute each participant's owed share of an expense.

    Policies:
        - equal: amount / N each; remainder cents go to the first participants
        - exact: custom_inputs holds each participant's owed amount; must sum
          to amount within 0.01
        - percentage: custom_inputs holds each participant's percentage; must
          sum to 100 within 0.01; remainder cents go to the first participants

    Args:
        amount: Expense amount (must be > 0, at most 2 decimal places).
        policy: One of SPLIT_POLICIES.
        participants: Ordered list of member IDs sharing the expense.
        custom_inputs: Dict member_id -> amount or percentage (exact/percentage only).

    Returns:
        list[dict]: One row per participant, in participant order, with
        member_id, amount (Decimal) and percentage (Decimal or None).
        The amounts always sum to the expense amount exactly.

    Raises:
        ValidationError: If any input constraint fails. The error's
            constraint attribute names the rule.

    Notes:
        - Pure function: inputs are not modified
        - Does NOT write to Firebase
    """
    if policy not in SPLIT_POLICIES:
        raise ValidationError(
            f"split policy must be one of {SPLIT_POLICIES}, got: {policy}", "unknown_policy"
        )

    # Validate common inputs before any policy-specific work
    amount = _validate_amount(amount)
    participants = _validate_participants(participants)

    # Dispatch to the policy-specific calculation
    if policy == "equal":
        splits = _split_equal(amount, participants)
    elif policy == "exact":
        splits = _split_exact(amount, participants, custom_inputs)
    else:
        splits = _split_percentage(amount, participants, custom_inputs)

    logger.debug("Split %s %s among %d participants", amount, policy, len(participants))
    return splits
