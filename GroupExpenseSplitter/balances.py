"""
Balances Module

This module derives per-member net balances for a group from its expenses
and expense splits.

Features:
    - Per-member totals (paid, owed, net)
    - Every group member included, even with no activity
    - Data-integrity checks (unknown members, unbalanced splits)

Data Model:
    Input - member_ids: ordered list of the group's member IDs
        (former members included, so historic expenses still resolve)

    Input - expenses (list of dicts):
        - expense_id: string
        - group_id: string
        - payer_id: string
        - amount: Decimal | float

    Input - splits (list of dicts):
        - expense_id: string
        - member_id: string
        - amount: Decimal | float

    Output - balances (dict keyed by member_id):
        - member_id: string
        - group_id: string
        - total_paid: Decimal (sum of expenses paid by this member)
        - total_owed: Decimal (sum of splits assigned to this member)
        - net_balance: Decimal (total_paid - total_owed)

Functions:
    compute_balances: Calculate per-member net balances.
"""

import logging
from collections import defaultdict
from decimal import Decimal

from errors import IntegrityError, ValidationError
from splitter import CENT, EPSILON, to_decimal

logger = logging.getLogger(__name__)


def _money(value, field_name: str) -> Decimal:
    try:
        return to_decimal(value, field_name)
    except ValidationError as e:
        # Stored records with a malformed amount are a data problem, not caller input
        raise IntegrityError(e.message, "invalid_amount")


def compute_balances(
    group_id: str,
    member_ids: list[str],
    expenses: list[dict],
    splits: list[dict]
) -> dict:
    """
    Calculate per-member net balances for a group.

    For each expense the payer's total_paid increases by the expense amount.
    For each split row the member's total_owed increases by the split amount.
    net_balance = total_paid - total_owed.

    Args:
        group_id: The ID of the group.
        member_ids: Ordered list of all member IDs of the group.
        expenses: List of expense dicts (expense_id, group_id, payer_id, amount).
        splits: List of split dicts (expense_id, member_id, amount).

    Returns:
        dict: Dictionary keyed by member_id (in member_ids order) containing
        member_id, group_id, total_paid, total_owed and net_balance as Decimals.
            - Positive net_balance = member is owed money
            - Negative net_balance = member owes money

    Raises:
        IntegrityError: If an expense belongs to another group, a payer or
            split member is not in member_ids, a split references an unknown
            expense, an expense's splits do not add up to its amount, or the
            net balances do not sum to zero.

    Notes:
        - Sum of all net balances is zero (within 0.01)
        - Does NOT modify its inputs
        - Does NOT read from or write to Firebase
    """
    members = set(member_ids)

    # Running totals per member, using Decimal for precision
    total_paid = defaultdict(Decimal)
    total_owed = defaultdict(Decimal)
    expense_amounts = {}

    # Credit each payer with the full expense amount
    for expense in expenses:
        expense_id = expense["expense_id"]
        if expense.get("group_id", group_id) != group_id:
            raise IntegrityError(
                f"expense '{expense_id}' belongs to group '{expense['group_id']}', not '{group_id}'",
                "foreign_expense"
            )

        payer_id = expense["payer_id"]
        if payer_id not in members:
            raise IntegrityError(
                f"expense '{expense_id}' is paid by '{payer_id}' who is not a member of group '{group_id}'",
                "unknown_member"
            )

        amount = _money(expense["amount"], f"amount of expense '{expense_id}'")
        expense_amounts[expense_id] = amount
        total_paid[payer_id] += amount

    # Charge each member their split, tracking how much of every expense is covered
    split_totals = defaultdict(Decimal)
    for split in splits:
        expense_id = split["expense_id"]
        member_id = split["member_id"]

        if expense_id not in expense_amounts:
            raise IntegrityError(
                f"split for '{member_id}' references unknown expense '{expense_id}'",
                "unknown_expense"
            )
        if member_id not in members:
            raise IntegrityError(
                f"split on expense '{expense_id}' references '{member_id}' who is not a member of group '{group_id}'",
                "unknown_member"
            )

        amount = _money(split["amount"], f"split amount for '{member_id}'")
        split_totals[expense_id] += amount
        total_owed[member_id] += amount

    # Every expense must be fully split
    for expense_id, amount in expense_amounts.items():
        if abs(split_totals[expense_id] - amount) > EPSILON:
            raise IntegrityError(
                f"splits of expense '{expense_id}' sum to {split_totals[expense_id]}, expected {amount}",
                "split_sum_mismatch"
            )

    # Build the result in member order, including members with no activity
    result = {}
    for member_id in member_ids:
        paid = total_paid[member_id].quantize(CENT)
        owed = total_owed[member_id].quantize(CENT)
        result[member_id] = {
            "member_id": member_id,
            "group_id": group_id,
            "total_paid": paid,
            "total_owed": owed,
            "net_balance": paid - owed
        }

    # Paid and owed totals cancel out across the group
    net_sum = sum((b["net_balance"] for b in result.values()), Decimal("0"))
    if abs(net_sum) > EPSILON:
        raise IntegrityError(
            f"net balances of group '{group_id}' sum to {net_sum}, expected 0",
            "unbalanced_group"
        )

    logger.debug("Computed balances for %d members of group %s", len(result), group_id)
    return result
