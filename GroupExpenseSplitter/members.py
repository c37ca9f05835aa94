"""
Members Module

This module handles all member-related operations for the group expense
splitter application.

Features:
    - Add members to a group
    - Remove members (soft delete, history is kept)
    - Retrieve member details
    - List currently active members

Data Model:
    Member stored at: groups/{group_id}/members/{member_id}
    Fields:
        - member_id: string (M001, M002, ... format)
        - name: string
        - email: string
        - joined_at: string (ISO timestamp)
        - left_at: string (ISO timestamp) or None

Functions:
    add_member: Add a new member to a group.
    validate_member_fields: Validate and normalise a new member's name and email.
    remove_member: Set left_at for a member (soft delete).
    get_members: Get all members of a group.
    get_active_members: Get members who have not left.
    get_member: Get a single member.
"""

import logging
import re
from typing import Optional

from config.firebase_config import get_db
from errors import NotFoundError, StoreUnavailableError, ValidationError
from utils import get_timestamp, next_sequential_id

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class Member:
    """
    Represents a member of a group.

    Attributes:
        member_id (str): Unique identifier in M### format.
        name (str): Display name of the member.
        email (str): Email address, unique among active members.
        joined_at (str): ISO timestamp of joining.
        left_at (str | None): ISO timestamp of leaving, or None if active.
    """

    def __init__(
        self,
        name: str,
        email: str,
        member_id: Optional[str] = None,
        joined_at: Optional[str] = None,
        left_at: Optional[str] = None
    ):
        self.member_id = member_id
        self.name = name
        self.email = email
        self.joined_at = joined_at
        self.left_at = left_at

    @property
    def is_active(self) -> bool:
        return self.left_at is None

    def to_dict(self) -> dict:
        """Convert member to dictionary for Firestore storage."""
        return {
            "member_id": self.member_id,
            "name": self.name,
            "email": self.email,
            "joined_at": self.joined_at,
            "left_at": self.left_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Member":
        """Create a Member instance from a dictionary."""
        return cls(
            member_id=data.get("member_id"),
            name=data.get("name"),
            email=data.get("email"),
            joined_at=data.get("joined_at"),
            left_at=data.get("left_at")
        )

    def __repr__(self) -> str:
        return f"Member(id='{self.member_id}', name='{self.name}', left={self.left_at})"


def _validate_non_empty_string(value: str, field_name: str) -> bool:
    """
    Validate that a string is non-empty.

    Raises:
        ValidationError: If string is empty or not a string.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field_name} must be a non-empty string", f"empty_{field_name}")
    return True


def validate_member_fields(name: str, email: str) -> tuple[str, str]:
    """
    Validate a new member's name and email.

    Returns:
        tuple: The stripped name and the normalised (lowercase) email.

    Raises:
        ValidationError: If either field is empty or the email is malformed.
    """
    _validate_non_empty_string(name, "name")
    _validate_non_empty_string(email, "email")

    email = email.strip().lower()
    if not EMAIL_PATTERN.match(email):
        raise ValidationError(f"email is not a valid address, got: {email}", "invalid_email")
    return name.strip(), email


def _group_ref(db, group_id: str):
    return db.collection("groups").document(group_id)


def _members_ref(db, group_id: str):
    return _group_ref(db, group_id).collection("members")


def _require_db():
    db = get_db()
    if db is None:
        raise StoreUnavailableError("Firestore is not available")
    return db


def add_member(group_id: str, name: str, email: str) -> Member:
    """
    Add a new member to a group.

    Args:
        group_id: The ID of the group.
        name: Display name of the member.
        email: Email address of the member.

    Returns:
        Member: The created member object.

    Raises:
        ValidationError: If input validation fails or an active member
            already uses the email.
        NotFoundError: If the group does not exist.
        StoreUnavailableError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")
    name, email = validate_member_fields(name, email)

    db = _require_db()
    group_ref = _group_ref(db, group_id)
    if not group_ref.get().exists:
        raise NotFoundError(f"Group {group_id} not found", "group_not_found")

    # Email must be unique among current members
    for existing in get_active_members(group_id):
        if existing.email == email:
            raise ValidationError(
                f"{email} is already a member of group {group_id}", "already_member"
            )

    member_id, counter_update = next_sequential_id(group_ref, "members", "M")
    member = Member(
        name=name,
        email=email,
        member_id=member_id,
        joined_at=get_timestamp()
    )

    batch = db.batch()
    batch.set(_members_ref(db, group_id).document(member.member_id), member.to_dict())
    batch.update(group_ref, counter_update)
    batch.commit()

    logger.info("Added member %s to group %s", member.member_id, group_id)
    return member


def get_member(group_id: str, member_id: str) -> Member:
    """
    Get a single member of a group (active or former).

    Raises:
        NotFoundError: If the member does not exist.
        StoreUnavailableError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")
    _validate_non_empty_string(member_id, "member_id")

    db = _require_db()
    doc = _members_ref(db, group_id).document(member_id).get()
    if not doc.exists:
        raise NotFoundError(f"Member {member_id} not found in group {group_id}", "member_not_found")
    return Member.from_dict(doc.to_dict())


def remove_member(group_id: str, member_id: str) -> Member:
    """
    Remove a member from a group by setting their left_at.

    Note: This performs a soft delete - the document is NOT deleted, so
    expenses and splits that reference the member keep resolving.

    Returns:
        Member: The updated member object.

    Raises:
        ValidationError: If the member already left.
        NotFoundError: If the member does not exist.
        StoreUnavailableError: If Firestore is not available.
    """
    member = get_member(group_id, member_id)
    if not member.is_active:
        raise ValidationError(f"Member {member_id} already left group {group_id}", "inactive_member")

    db = _require_db()
    member.left_at = get_timestamp()
    _members_ref(db, group_id).document(member_id).update({"left_at": member.left_at})

    logger.info("Member %s left group %s", member_id, group_id)
    return member


def get_members(group_id: str) -> list[Member]:
    """
    Get all members of a group, ordered by member_id.

    Returns:
        list[Member]: All members (active and former).

    Raises:
        ValidationError: If group_id is invalid.
        StoreUnavailableError: If Firestore is not available.
    """
    _validate_non_empty_string(group_id, "group_id")

    db = _require_db()
    docs = _members_ref(db, group_id).stream()

    members = [Member.from_dict(doc.to_dict()) for doc in docs]
    members.sort(key=lambda m: m.member_id)
    return members


def get_active_members(group_id: str) -> list[Member]:
    """Get members who have not left the group, ordered by member_id."""
    return [m for m in get_members(group_id) if m.is_active]
