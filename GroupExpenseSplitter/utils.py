"""
Utilities Module

This module provides utility functions and helpers for the group expense
splitter application.

Features:
    - Transparency and traceability of balance calculations
    - Per-member breakdown of the split rows behind a balance
    - Sequential record IDs and timestamps for stored documents

Data Model:
    Input - expenses: list of dicts with:
        - expense_id: string
        - description: string
        - category: string
        - payer_id: string
        - amount: Decimal | float
        - split_policy: string

    Input - splits: list of dicts with:
        - expense_id: string
        - member_id: string
        - amount: Decimal | float
        - percentage: Decimal | float | None

    Input - balances: dict from compute_balances()

Functions:
    explain_member_balance: Get detailed breakdown for one member.
    explain_all_members: Get detailed breakdown for all members.
    generate_id: Generate a formatted sequential identifier.
    next_sequential_id: Generate the next never-used ID in a group subcollection.
    get_timestamp: Get current UTC timestamp in ISO format.
"""

import re
from datetime import datetime, timezone
from decimal import Decimal


def explain_member_balance(
    member_id: str,
    expenses: list[dict],
    splits: list[dict],
    balances: dict
) -> dict:
    """
    Generate detailed explanation of how a member's balance was calculated.

    For each expense the member has a split on:
        - Shows expense details (id, description, category, total amount, payer)
        - Shows the split policy and the member's owed amount (and percentage)

    Args:
        member_id: ID of the member to explain.
        expenses: List of expense dicts.
        splits: List of split dicts.
        balances: Output from compute_balances().

    Returns:
        dict: Explanation containing:
            - member_id: string
            - expense_contributions: list of dicts with expense breakdown
            - total_paid: Decimal (from balances)
            - total_owed: Decimal (from balances)
            - net_balance: Decimal (from balances)
    """
    expense_map = {e["expense_id"]: e for e in expenses}

    balance_info = balances.get(member_id, {
        "total_paid": Decimal("0.00"),
        "total_owed": Decimal("0.00"),
        "net_balance": Decimal("0.00")
    })

    expense_contributions = []
    for split in splits:
        if split["member_id"] != member_id:
            continue
        expense = expense_map.get(split["expense_id"])
        if expense is None:
            continue

        expense_contributions.append({
            "expense_id": expense["expense_id"],
            "description": expense.get("description"),
            "category": expense.get("category"),
            "payer_id": expense["payer_id"],
            "split_policy": expense.get("split_policy"),
            "total_expense_amount": expense["amount"],
            "member_share": split["amount"],
            "percentage": split.get("percentage")
        })

    return {
        "member_id": member_id,
        "expense_contributions": expense_contributions,
        "total_paid": balance_info["total_paid"],
        "total_owed": balance_info["total_owed"],
        "net_balance": balance_info["net_balance"]
    }


def explain_all_members(
    member_ids: list[str],
    expenses: list[dict],
    splits: list[dict],
    balances: dict
) -> list[dict]:
    """
    Generate detailed explanations for all members.

    Notes:
        - Includes all members, even those with no expenses
        - Ordered by member_id
    """
    explanations = [
        explain_member_balance(member_id, expenses, splits, balances)
        for member_id in member_ids
    ]
    explanations.sort(key=lambda x: x["member_id"])
    return explanations


def generate_id(prefix: str = "ID", number: int = 1) -> str:
    """
    Generate a formatted identifier.

    Args:
        prefix: Prefix for the ID (e.g., "M", "E").
        number: Numeric value to format.

    Returns:
        str: Formatted ID like "M001", "E042".
    """
    return f"{prefix}{number:03d}"


def next_sequential_id(group_ref, collection_name: str, prefix: str) -> tuple[str, dict]:
    """
    Generate the next sequential ID for documents in a group subcollection.

    Logic:
        1. Read the counter stored on the group document for the collection
        2. Scan existing document IDs matching <prefix>### (groups written
           before the counter existed)
        3. Return the highest number + 1, zero-padded to 3 digits

    The counter only ever grows, so the ID of a deleted document is never
    handed out again.

    Args:
        group_ref: Firestore reference of the group document.
        collection_name: Subcollection the new document goes into.
        prefix: ID prefix (e.g. "M", "E").

    Returns:
        tuple: A tuple containing:
            - str: The new ID.
            - dict: Counter update to write to the group document in the
              same batch as the new document.
    """
    counter_field = f"{collection_name}_counter"
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")

    group_doc = group_ref.get()
    max_num = (group_doc.to_dict() or {}).get(counter_field, 0) if group_doc.exists else 0

    for doc in group_ref.collection(collection_name).stream():
        match = pattern.match(doc.id)
        if match:
            max_num = max(max_num, int(match.group(1)))

    number = max_num + 1
    return generate_id(prefix, number), {counter_field: number}


def get_timestamp() -> str:
    """
    Get current UTC timestamp in ISO format.

    Returns:
        str: ISO formatted timestamp.
    """
    return datetime.now(timezone.utc).isoformat()
