"""
Analytics Module

This module provides analytics and reporting features for the group expense
splitter application.

Features:
    - Total spend and expense count
    - Category-wise expense breakdown (amount and share of total)
    - Monthly spending breakdown
    - Per-member payer totals
    - Smart warnings for spending imbalances
    - Group overview (member count, total spend, last activity)

Data Model:
    Input - members: list of dicts with:
        - member_id: string
        - name: string (optional)

    Input - expenses: list of dicts with:
        - payer_id: string
        - amount: float
        - category: string
        - created_at: string (ISO timestamp)

    Output - dict containing:
        - analytics: dict with totals and breakdowns
        - warnings: list of warning strings

Functions:
    generate_analytics: Generate analytics and warnings from expense data.
    summarize_group: Build the overview (counts, total, last activity) of a group.
"""

from collections import defaultdict
from decimal import Decimal, ROUND_HALF_UP

# Warning thresholds (percent of total spend)
PAYER_SHARE_LIMIT = 40
CATEGORY_SHARE_LIMIT = 50


def _round_decimal(value: Decimal) -> float:
    """
    Round a Decimal to 2 decimal places and convert to float.

    Args:
        value: Decimal value to round.

    Returns:
        float: Rounded value as float.
    """
    return float(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def generate_analytics(members: list[dict], expenses: list[dict]) -> dict:
    """
    Generate analytics and smart warnings from expense data.

    Analytics computed:
        - total_amount: Sum of all expenses
        - expense_count: Number of expenses
        - category_breakdown: Amount and percentage per category
        - monthly_breakdown: Amount per YYYY-MM month, ascending
        - member_breakdown: Total amount paid by each member

    Warnings generated (rule-based):
        - If one member paid > 40% of total group spend
        - If one category > 50% of total spend

    Args:
        members: List of member dicts with member_id (name optional).
        expenses: List of expense dicts with payer_id, amount, category, created_at.

    Returns:
        dict: Contains two keys:
            - analytics: dict with the values above
            - warnings: list of warning strings

    Notes:
        - All amounts rounded to 2 decimal places
        - The payer warning only fires for groups with more than one member
    """
    category_totals = defaultdict(Decimal)
    monthly_totals = defaultdict(Decimal)
    payer_totals = defaultdict(Decimal)
    total_spent = Decimal("0")

    for expense in expenses:
        amount = Decimal(str(expense["amount"]))
        month = (expense.get("created_at") or "")[:7] or "unknown"

        category_totals[expense["category"]] += amount
        monthly_totals[month] += amount
        payer_totals[expense["payer_id"]] += amount
        total_spent += amount

    def _percentage(amount: Decimal) -> float:
        if total_spent == 0:
            return 0.0
        return _round_decimal(amount / total_spent * 100)

    category_breakdown = [
        {
            "category": category,
            "amount": _round_decimal(amount),
            "percentage": _percentage(amount)
        }
        for category, amount in sorted(category_totals.items())
    ]

    monthly_breakdown = [
        {"month": month, "amount": _round_decimal(amount)}
        for month, amount in sorted(monthly_totals.items())
    ]

    member_breakdown = [
        {"member_id": member_id, "amount": _round_decimal(amount)}
        for member_id, amount in sorted(payer_totals.items())
    ]

    analytics = {
        "total_amount": _round_decimal(total_spent),
        "expense_count": len(expenses),
        "category_breakdown": category_breakdown,
        "monthly_breakdown": monthly_breakdown,
        "member_breakdown": member_breakdown
    }

    warnings = []
    total_spent_float = _round_decimal(total_spent)
    names = {m["member_id"]: m.get("name") or m["member_id"] for m in members}

    # Rule 1: one member paid more than PAYER_SHARE_LIMIT percent
    if total_spent > 0 and len(members) > 1:
        for payer_id, amount in sorted(payer_totals.items()):
            percentage = _percentage(amount)
            if percentage > PAYER_SHARE_LIMIT:
                warnings.append(
                    f"Warning: {names.get(payer_id, payer_id)} paid {percentage}% of total expenses "
                    f"({_round_decimal(amount)} of {total_spent_float})"
                )

    # Rule 2: one category is more than CATEGORY_SHARE_LIMIT percent
    if total_spent > 0:
        for category, amount in sorted(category_totals.items()):
            percentage = _percentage(amount)
            if percentage > CATEGORY_SHARE_LIMIT:
                warnings.append(
                    f"Warning: '{category}' accounts for {percentage}% of total spend "
                    f"({_round_decimal(amount)} of {total_spent_float})"
                )

    return {
        "analytics": analytics,
        "warnings": warnings
    }


def summarize_group(group: dict, members: list[dict], expenses: list[dict]) -> dict:
    """
    Build the overview shown for a group.

    Args:
        group: Group dict (group_id, name, created_at, ...).
        members: List of member dicts with left_at (None while active).
        expenses: List of expense dicts with amount and created_at.

    Returns:
        dict: The group fields plus:
            - member_count: int (active members)
            - expense_count: int
            - total_expenses: float (rounded to 2 decimal places)
            - last_activity: string (newest expense created_at, or the
              group's created_at when there are no expenses)
    """
    total = sum((Decimal(str(e["amount"])) for e in expenses), Decimal("0"))
    timestamps = [e["created_at"] for e in expenses if e.get("created_at")]

    return {
        **group,
        "member_count": sum(1 for m in members if m.get("left_at") is None),
        "expense_count": len(expenses),
        "total_expenses": _round_decimal(total),
        "last_activity": max(timestamps) if timestamps else group.get("created_at")
    }
