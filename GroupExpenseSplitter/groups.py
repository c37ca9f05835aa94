"""
Groups Module

This module handles group records for the group expense splitter
application.

Features:
    - Create a group, optionally with its first members
    - Retrieve a group
    - Delete a group together with everything stored under it

Data Model:
    Group stored at: groups/{group_id}
    Fields:
        - group_id: string (group_<8 hex> format)
        - name: string
        - description: string or None
        - avatar: string (emoji shown next to the group name)
        - created_by: string or None (free-form creator reference)
        - created_at: string (ISO timestamp)
        - members_counter / expenses_counter: int (last issued M### / E###)

Functions:
    create_group: Create a new group.
    get_group: Get a group by ID.
    delete_group: Delete a group with its members, expenses and splits.
"""

import logging
import uuid
from typing import Optional

from config.firebase_config import get_db
from errors import NotFoundError, StoreUnavailableError, ValidationError
from members import Member, validate_member_fields
from utils import generate_id, get_timestamp

logger = logging.getLogger(__name__)

DEFAULT_AVATAR = "🏖️"

# Firestore rejects batches with more than 500 writes
BATCH_LIMIT = 500

# Subcollections removed along with a group
GROUP_COLLECTIONS = ("splits", "expenses", "members")


class Group:
    """
    Represents an expense-sharing group.

    Attributes:
        group_id (str): Unique identifier in group_<hex> format.
        name (str): Display name of the group.
        description (str | None): Optional description.
        avatar (str): Emoji shown next to the group name.
        created_by (str | None): Optional reference to whoever created it.
        created_at (str): ISO timestamp of creation.
    """

    def __init__(
        self,
        group_id: str,
        name: str,
        description: Optional[str] = None,
        avatar: str = DEFAULT_AVATAR,
        created_by: Optional[str] = None,
        created_at: Optional[str] = None
    ):
        self.group_id = group_id
        self.name = name
        self.description = description
        self.avatar = avatar
        self.created_by = created_by
        self.created_at = created_at

    def to_dict(self) -> dict:
        """Convert group to dictionary for Firestore storage."""
        return {
            "group_id": self.group_id,
            "name": self.name,
            "description": self.description,
            "avatar": self.avatar,
            "created_by": self.created_by,
            "created_at": self.created_at
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Group":
        """Create a Group instance from a dictionary."""
        return cls(
            group_id=data.get("group_id"),
            name=data.get("name"),
            description=data.get("description"),
            avatar=data.get("avatar") or DEFAULT_AVATAR,
            created_by=data.get("created_by"),
            created_at=data.get("created_at")
        )

    def __repr__(self) -> str:
        return f"Group(id='{self.group_id}', name='{self.name}')"


def _generate_group_id() -> str:
    """
    Generate a unique group ID.

    Format: group_{short_uuid}
    """
    return f"group_{uuid.uuid4().hex[:8]}"


def _require_db():
    db = get_db()
    if db is None:
        raise StoreUnavailableError("Firestore is not available")
    return db


def _validate_initial_members(members: list[dict]) -> list[tuple[str, str]]:
    """Validate the first members of a new group; emails must be distinct."""
    validated = []
    seen = set()
    for entry in members:
        name, email = validate_member_fields(entry.get("name"), entry.get("email"))
        if email in seen:
            raise ValidationError(f"{email} is listed more than once", "already_member")
        seen.add(email)
        validated.append((name, email))
    return validated


def create_group(
    name: str,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
    avatar: Optional[str] = None,
    members: Optional[list[dict]] = None
) -> Group:
    """
    Create a new group.

    The group document and its initial members are written in one batch.

    Args:
        name: Display name of the group.
        description: Optional description.
        created_by: Optional reference to the creator.
        avatar: Emoji for the group (defaults to DEFAULT_AVATAR).
        members: Optional list of {"name", "email"} dicts; they become
            M001, M002, ... in the given order.

    Returns:
        Group: The created group.

    Raises:
        ValidationError: If name is empty or a member entry is invalid.
        StoreUnavailableError: If Firestore is not available.
    """
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name must be a non-empty string", "empty_name")
    initial_members = _validate_initial_members(members or [])

    db = _require_db()
    timestamp = get_timestamp()

    group = Group(
        group_id=_generate_group_id(),
        name=name.strip(),
        description=description.strip() if description else None,
        avatar=avatar.strip() if avatar and avatar.strip() else DEFAULT_AVATAR,
        created_by=created_by,
        created_at=timestamp
    )
    group_ref = db.collection("groups").document(group.group_id)

    # Initial members are numbered in the order given
    new_members = [
        Member(name=member_name, email=email, member_id=generate_id("M", number), joined_at=timestamp)
        for number, (member_name, email) in enumerate(initial_members, start=1)
    ]

    batch = db.batch()
    batch.set(group_ref, {**group.to_dict(), "members_counter": len(new_members)})
    for member in new_members:
        batch.set(group_ref.collection("members").document(member.member_id), member.to_dict())
    batch.commit()

    logger.info("Created group %s with %d members", group.group_id, len(new_members))
    return group


def get_group(group_id: str) -> Group:
    """
    Get a group by ID.

    Raises:
        ValidationError: If group_id is empty.
        NotFoundError: If the group does not exist.
        StoreUnavailableError: If Firestore is not available.
    """
    if not isinstance(group_id, str) or not group_id.strip():
        raise ValidationError("group_id must be a non-empty string", "empty_group_id")

    db = _require_db()

    doc = db.collection("groups").document(group_id).get()
    if not doc.exists:
        raise NotFoundError(f"Group {group_id} not found", "group_not_found")

    return Group.from_dict(doc.to_dict())


def delete_group(group_id: str) -> None:
    """
    Delete a group with all of its members, expenses and split rows.

    Deletes go out in batches of at most BATCH_LIMIT writes, one batch for
    any group under that size. The group document is deleted in the last
    batch, so the group stays visible until everything under it is gone.

    Raises:
        NotFoundError: If the group does not exist.
        StoreUnavailableError: If Firestore is not available.
    """
    get_group(group_id)

    db = _require_db()
    group_ref = db.collection("groups").document(group_id)

    # Collect every document under the group, then the group itself
    refs = []
    for collection_name in GROUP_COLLECTIONS:
        collection_ref = group_ref.collection(collection_name)
        refs.extend(collection_ref.document(doc.id) for doc in collection_ref.stream())
    refs.append(group_ref)

    for start in range(0, len(refs), BATCH_LIMIT):
        batch = db.batch()
        for ref in refs[start:start + BATCH_LIMIT]:
            batch.delete(ref)
        batch.commit()

    logger.info("Deleted group %s (%d documents)", group_id, len(refs))
