"""
Expenses Module

This module handles all expense-related operations for the group expense
splitter application.

Features:
    - Add/edit/delete expenses
    - Categorize expenses (food, travel, shopping, ...)
    - Track who paid and how the amount is split
    - Expense and split rows are written together in one batch

Data Model:
    Expense stored at: groups/{group_id}/expenses/{expense_id}
    Fields:
        - expense_id: string (E001, E002, ... format)
        - group_id: string
        - description: string
        - amount: float (must be > 0)
        - category: string (see CATEGORIES)
        - payer_id: string (member_id who paid)
        - split_policy: string (equal, exact, percentage)
        - created_at: string (ISO timestamp)
        - updated_at: string (ISO timestamp)

    ExpenseSplit stored at: groups/{group_id}/splits/{expense_id}_{member_id}
    Fields:
        - expense_id: string
        - member_id: string
        - amount: float (owed amount)
        - percentage: float or None

Functions:
    add_expense: Add a new expense and its splits to a group.
    get_expenses: Get all expenses of a group.
    get_recent_expenses: Get the newest expenses of a group (activity feed).
    get_expense: Get a single expense.
    get_splits: Get split rows of a group or of one expense.
    update_expense: Edit an expense, recomputing splits when needed.
    delete_expense: Delete an expense and its splits.
"""

import logging
from typing import Optional

from config.firebase_config import get_db
from errors import NotFoundError, StoreUnavailableError, ValidationError
from groups import get_group
from members import get_members
from splitter import SPLIT_POLICIES, compute_splits, to_decimal
from utils import get_timestamp, next_sequential_id

logger = logging.getLogger(__name__)


# Category lookup table (value -> display label and icon)
CATEGORIES = {
    "food": {"label": "Food & Dining", "icon": "🍽️"},
    "travel": {"label": "Travel", "icon": "✈️"},
    "shopping": {"label": "Shopping", "icon": "🛍️"},
    "entertainment": {"label": "Entertainment", "icon": "🎬"},
    "utilities": {"label": "Utilities", "icon": "⚡"},
    "general": {"label": "General", "icon": "📝"},
}
VALID_CATEGORIES = set(CATEGORIES)
DEFAULT_CATEGORY = "general"


class Expense:
    """
    Represents a single expense in a group.

    Attributes:
        expense_id (str): Unique identifier in E### format.
        group_id (str): Group the expense belongs to.
        description (str): What the expense was for.
        amount (float): Amount of the expense (must be > 0).
        category (str): One of CATEGORIES.
        payer_id (str): Member ID of who paid.
        split_policy (str): One of: equal, exact, percentage.
        created_at (str): ISO timestamp of creation.
        updated_at (str | None): ISO timestamp of last edit.
    """

    def __init__(
        self,
        expense_id: str,
        group_id: str,
        description: str,
        amount: float,
        category: str,
        payer_id: str,
        split_policy: str,
        created_at: Optional[str] = None,
        updated_at: Optional[str] = None
    ):
        self.expense_id = expense_id
        self.group_id = group_id
        self.description = description
        self.amount = amount
        self.category = category
        self.payer_id = payer_id
        self.split_policy = split_policy
        self.created_at = created_at
        self.updated_at = updated_at

    def to_dict(self) -> dict:
        """Convert expense to dictionary for Firestore storage."""
        return {
            "expense_id": self.expense_id,
            "group_id": self.group_id,
            "description": self.description,
            "amount": self.amount,
            "category": self.category,
            "payer_id": self.payer_id,
            "split_policy": self.split_policy,
            "created_at": self.created_at,
            "updated_at": self.updated_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Expense":
        """Create an Expense instance from a dictionary."""
        return cls(
            expense_id=data.get("expense_id"),
            group_id=data.get("group_id"),
            description=data.get("description"),
            amount=data.get("amount"),
            category=data.get("category", DEFAULT_CATEGORY),
            payer_id=data.get("payer_id"),
            split_policy=data.get("split_policy", "equal"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at")
        )

    def __repr__(self) -> str:
        return f"Expense(id='{self.expense_id}', payer='{self.payer_id}', amount={self.amount}, policy='{self.split_policy}')"


class ExpenseSplit:
    """
    One member's owed share of an expense.

    Attributes:
        expense_id (str): Expense the share belongs to.
        member_id (str): Member who owes the share.
        amount (float): Owed amount.
        percentage (float | None): Percentage for percentage splits.
    """

    def __init__(
        self,
        expense_id: str,
        member_id: str,
        amount: float,
        percentage: Optional[float] = None
    ):
        self.expense_id = expense_id
        self.member_id = member_id
        self.amount = amount
        self.percentage = percentage

    @property
    def split_id(self) -> str:
        return f"{self.expense_id}_{self.member_id}"

    def to_dict(self) -> dict:
        """Convert split to dictionary for Firestore storage."""
        return {
            "expense_id": self.expense_id,
            "member_id": self.member_id,
            "amount": self.amount,
            "percentage": self.percentage
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExpenseSplit":
        """Create an ExpenseSplit instance from a dictionary."""
        return cls(
            expense_id=data.get("expense_id"),
            member_id=data.get("member_id"),
            amount=data.get("amount"),
            percentage=data.get("percentage")
        )

    def __repr__(self) -> str:
        return f"ExpenseSplit(expense='{self.expense_id}', member='{self.member_id}', amount={self.amount})"


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValidationError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string", f"empty_{field_name}")
    return True


def _validate_category(category: str) -> None:
    if category not in VALID_CATEGORIES:
        raise ValidationError(
            f"category must be one of {sorted(VALID_CATEGORIES)}, got: {category}", "invalid_category"
        )


def _require_db():
    db = get_db()
    if db is None:
        raise StoreUnavailableError("Firestore is not available")
    return db


def _group_ref(db, group_id: str):
    return db.collection("groups").document(group_id)


def _check_members(group_id: str, member_ids: list) -> None:
    """
    Check that every referenced member is an active group member.

    Raises:
        NotFoundError: If a referenced member does not exist.
        ValidationError: If a referenced member has left the group.
    """
    if not member_ids:
        return
    members = {m.member_id: m for m in get_members(group_id)}

    for member_id in member_ids:
        member = members.get(member_id)
        if member is None:
            raise NotFoundError(
                f"Member {member_id} not found in group {group_id}", "member_not_found"
            )
        if not member.is_active:
            raise ValidationError(
                f"Member {member_id} has left group {group_id}", "inactive_member"
            )


def _build_splits(expense_id: str, split_rows: list[dict]) -> list[ExpenseSplit]:
    """Convert compute_splits() rows into ExpenseSplit records."""
    return [
        ExpenseSplit(
            expense_id=expense_id,
            member_id=row["member_id"],
            amount=float(row["amount"]),
            percentage=float(row["percentage"]) if row["percentage"] is not None else None
        )
        for row in split_rows
    ]


def add_expense(
    group_id: str,
    description: str,
    amount,
    payer_id: str,
    category: str = DEFAULT_CATEGORY,
    split_policy: str = "equal",
    participants: Optional[list[str]] = None,
    custom_inputs: Optional[dict] = None
) -> tuple[Expense, list[ExpenseSplit]]:
    """
    Add a new expense to a group and split it among participants.

    The expense and all of its split rows are written in one Firestore
    batch, so either everything is stored or nothing is.

    Args:
        group_id: The ID of the group.
        description: What the expense was for.
        amount: Amount of the expense (must be > 0, at most 2 decimals).
        payer_id: Member ID of who paid the expense.
        category: Category of expense (see CATEGORIES).
        split_policy: One of: equal, exact, percentage.
        participants: Member IDs sharing the expense. Defaults to all active
            members of the group, ordered by member_id.
        custom_inputs: Dict member_id -> amount (exact) or percentage
            (percentage). Ignored for equal splits.

    Returns:
        tuple: A tuple containing:
            - Expense: The created expense.
            - list[ExpenseSplit]: The created split rows.

    Raises:
        ValidationError: If input validation or split calculation fails.
        NotFoundError: If the group, payer or a participant does not exist.
        StoreUnavailableError: If Firestore is not available.

    Notes:
        - Payer does NOT have to be a participant
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(description, "description")
    _validate_non_empty_string(payer_id, "payer_id")
    _validate_category(category)

    get_group(group_id)

    # Default to everyone currently in the group
    if participants is None:
        participants = [m.member_id for m in get_members(group_id) if m.is_active]
    _check_members(group_id, [payer_id] + list(participants))

    # Compute splits before anything is written
    split_rows = compute_splits(
        amount,
        split_policy,
        participants,
        custom_inputs if split_policy != "equal" else None
    )

    db = _require_db()
    group_ref = _group_ref(db, group_id)
    timestamp = get_timestamp()
    expense_id, counter_update = next_sequential_id(group_ref, "expenses", "E")

    expense = Expense(
        expense_id=expense_id,
        group_id=group_id,
        description=description.strip(),
        amount=float(to_decimal(amount)),
        category=category,
        payer_id=payer_id,
        split_policy=split_policy,
        created_at=timestamp,
        updated_at=timestamp
    )
    splits = _build_splits(expense.expense_id, split_rows)

    # Expense, split rows and ID counter are stored together or not at all
    batch = db.batch()
    batch.set(group_ref.collection("expenses").document(expense.expense_id), expense.to_dict())
    for split in splits:
        batch.set(group_ref.collection("splits").document(split.split_id), split.to_dict())
    batch.update(group_ref, counter_update)
    batch.commit()

    logger.info(
        "Added expense %s (%s, %s split among %d) to group %s",
        expense.expense_id, expense.amount, split_policy, len(splits), group_id
    )
    return expense, splits


def get_expenses(group_id: str) -> list[Expense]:
    """
    Get all expenses of a group, ordered by expense_id.

    Raises:
        ValidationError: If group_id is invalid.
        StoreUnavailableError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")

    db = _require_db()
    docs = _group_ref(db, group_id).collection("expenses").stream()

    expenses = [Expense.from_dict(doc.to_dict()) for doc in docs]
    expenses.sort(key=lambda e: e.expense_id)
    return expenses


def get_recent_expenses(group_id: str, limit: int = 10) -> list[Expense]:
    """
    Get the most recently created expenses of a group, newest first.

    Args:
        group_id: The ID of the group.
        limit: Maximum number of expenses to return (must be >= 1).

    Returns:
        list[Expense]: Up to limit expenses ordered by created_at
        descending; ties are ordered by expense_id descending.

    Raises:
        ValidationError: If limit is not a positive integer.
        StoreUnavailableError: If Firestore is not available.
    """
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"limit must be a positive integer, got: {limit}", "invalid_limit")

    expenses = get_expenses(group_id)
    expenses.sort(key=lambda e: (e.created_at or "", e.expense_id), reverse=True)
    return expenses[:limit]


def get_expense(group_id: str, expense_id: str) -> Expense:
    """
    Get a single expense.

    Raises:
        NotFoundError: If the expense does not exist.
        StoreUnavailableError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(expense_id, "expense_id")

    db = _require_db()
    doc = _group_ref(db, group_id).collection("expenses").document(expense_id).get()
    if not doc.exists:
        raise NotFoundError(f"Expense {expense_id} not found in group {group_id}", "expense_not_found")
    return Expense.from_dict(doc.to_dict())


def get_splits(group_id: str, expense_id: Optional[str] = None) -> list[ExpenseSplit]:
    """
    Get split rows of a group, optionally only those of one expense.

    Returns:
        list[ExpenseSplit]: Split rows ordered by (expense_id, member_id).
    """
    _validate_non_empty_string(group_id, "group_id")

    db = _require_db()
    docs = _group_ref(db, group_id).collection("splits").stream()

    # Filter in memory
    splits = [ExpenseSplit.from_dict(doc.to_dict()) for doc in docs]
    if expense_id is not None:
        splits = [s for s in splits if s.expense_id == expense_id]

    splits.sort(key=lambda s: (s.expense_id, s.member_id))
    return splits


def update_expense(
    group_id: str,
    expense_id: str,
    description: Optional[str] = None,
    amount=None,
    category: Optional[str] = None,
    payer_id: Optional[str] = None,
    split_policy: Optional[str] = None,
    participants: Optional[list[str]] = None,
    custom_inputs: Optional[dict] = None
) -> tuple[Expense, list[ExpenseSplit]]:
    """
    Edit an expense.

    Description, category and payer edits only touch the expense document.
    Changing the amount, split policy, participants or custom inputs
    recomputes the split rows; the expense and its new splits are written
    in one batch and the old split rows are removed in the same batch.

    Unchanged split settings are taken from the stored expense:
        - participants: members with an existing split row
        - custom_inputs: stored percentages (percentage) or stored
          amounts (exact)

    Returns:
        tuple: The updated Expense and its (possibly new) ExpenseSplit rows.

    Raises:
        ValidationError: If input validation or split calculation fails.
        NotFoundError: If the expense or a referenced member does not exist.
        StoreUnavailableError: If Firestore is not available.
    """
    expense = get_expense(group_id, expense_id)
    old_splits = get_splits(group_id, expense_id)

    if description is not None:
        _validate_non_empty_string(description, "description")
        expense.description = description.strip()
    if category is not None:
        _validate_category(category)
        expense.category = category

    resplit = any(v is not None for v in (amount, split_policy, participants, custom_inputs))
    new_payer = payer_id if payer_id is not None else expense.payer_id
    new_participants = participants if participants is not None else [s.member_id for s in old_splits]

    # Only newly referenced members must be active
    old_ids = {s.member_id for s in old_splits} | {expense.payer_id}
    _check_members(group_id, [m for m in [new_payer] + list(new_participants) if m not in old_ids])
    expense.payer_id = new_payer

    splits = old_splits
    if resplit:
        policy = split_policy if split_policy is not None else expense.split_policy
        new_amount = amount if amount is not None else expense.amount

        # Reuse stored inputs when the policy is unchanged
        inputs = custom_inputs
        if inputs is None and policy == expense.split_policy:
            if policy == "percentage":
                inputs = {s.member_id: s.percentage for s in old_splits}
            elif policy == "exact":
                inputs = {s.member_id: s.amount for s in old_splits}

        split_rows = compute_splits(
            new_amount,
            policy,
            new_participants,
            inputs if policy != "equal" else None
        )
        expense.amount = float(to_decimal(new_amount))
        expense.split_policy = policy
        splits = _build_splits(expense_id, split_rows)

    expense.updated_at = get_timestamp()

    db = _require_db()
    group_ref = _group_ref(db, group_id)
    batch = db.batch()
    batch.set(group_ref.collection("expenses").document(expense_id), expense.to_dict())
    if resplit:
        kept = {s.member_id for s in splits}
        for split in old_splits:
            if split.member_id not in kept:
                batch.delete(group_ref.collection("splits").document(split.split_id))
        for split in splits:
            batch.set(group_ref.collection("splits").document(split.split_id), split.to_dict())
    batch.commit()

    logger.info("Updated expense %s in group %s (resplit=%s)", expense_id, group_id, resplit)
    return expense, splits


def delete_expense(group_id: str, expense_id: str) -> None:
    """
    Delete an expense and all of its split rows in one batch.

    Raises:
        NotFoundError: If the expense does not exist.
        StoreUnavailableError: If Firestore is not available.
    """
    get_expense(group_id, expense_id)
    splits = get_splits(group_id, expense_id)

    db = _require_db()
    group_ref = _group_ref(db, group_id)
    batch = db.batch()
    for split in splits:
        batch.delete(group_ref.collection("splits").document(split.split_id))
    batch.delete(group_ref.collection("expenses").document(expense_id))
    batch.commit()

    logger.info("Deleted expense %s from group %s", expense_id, group_id)
