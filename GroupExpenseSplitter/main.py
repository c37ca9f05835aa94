"""
GroupExpenseSplitter - FastAPI Web Backend

This module serves as the main entry point for the group expense splitting
API using FastAPI.

Features:
    - RESTful API for managing groups, members, and expenses
    - Integration with Firebase Firestore backend
    - Expense splitting, balance and settlement calculations
    - Analytics and transparency reports

Endpoints:
    POST   /groups                                        - Create a new group
    GET    /groups/{group_id}                             - Get a group with its overview
    DELETE /groups/{group_id}                             - Delete a group and its data
    POST   /groups/{group_id}/members                     - Add member to group
    GET    /groups/{group_id}/members                     - List members
    DELETE /groups/{group_id}/members/{member_id}         - Member leaves group
    POST   /groups/{group_id}/expenses                    - Add expense to group
    GET    /groups/{group_id}/expenses                    - List expenses
    GET    /groups/{group_id}/activity                    - Newest expenses first
    GET    /groups/{group_id}/expenses/{expense_id}/splits - List expense splits
    PATCH  /groups/{group_id}/expenses/{expense_id}       - Edit expense
    DELETE /groups/{group_id}/expenses/{expense_id}       - Delete expense
    GET    /groups/{group_id}/balances                    - Net balance per member
    GET    /groups/{group_id}/settlements                 - Suggested transfers
    GET    /groups/{group_id}/analytics                   - Spending analytics
    GET    /groups/{group_id}/explanations                - Per-member breakdown
    GET    /categories                                    - Category lookup table

Usage:
    uvicorn main:app --reload
"""

import logging
from decimal import Decimal
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import settings
from errors import IntegrityError, NotFoundError, SplitterError, StoreUnavailableError, ValidationError
from groups import create_group, delete_group, get_group
from members import Member, add_member, get_members, remove_member
from expenses import (
    CATEGORIES,
    DEFAULT_CATEGORY,
    Expense,
    ExpenseSplit,
    add_expense,
    delete_expense,
    get_expense,
    get_expenses,
    get_recent_expenses,
    get_splits,
    update_expense
)
from balances import compute_balances
from settlement import plan_settlements
from analytics import generate_analytics, summarize_group
from utils import explain_all_members

settings.configure_logging()
logger = logging.getLogger(__name__)


# =============================================================================
# Pydantic Models for Request/Response Validation
# =============================================================================

class MemberCreate(BaseModel):
    """Request model for adding a member."""
    name: str = Field(..., min_length=1, description="Member display name")
    email: str = Field(..., min_length=3, description="Member email address")


class GroupCreate(BaseModel):
    """Request model for creating a new group."""
    name: str = Field(..., min_length=1, description="Group name")
    description: Optional[str] = Field(None, description="Optional description")
    avatar: Optional[str] = Field(None, description="Emoji for the group")
    created_by: Optional[str] = Field(None, description="Optional creator reference")
    members: list[MemberCreate] = Field(default_factory=list, description="Initial members")


class GroupResponse(BaseModel):
    """Response model for group data."""
    group_id: str
    name: str
    description: Optional[str]
    avatar: str
    created_by: Optional[str]
    created_at: Optional[str]


class GroupSummaryResponse(GroupResponse):
    """Response model for a group with its overview figures."""
    member_count: int
    expense_count: int
    total_expenses: float
    last_activity: Optional[str]


class MemberResponse(BaseModel):
    """Response model for member data."""
    member_id: str
    name: str
    email: str
    joined_at: Optional[str]
    left_at: Optional[str]


class ExpenseCreate(BaseModel):
    """Request model for adding an expense."""
    description: str = Field(..., min_length=1, description="What the expense was for")
    amount: float = Field(..., gt=0, description="Expense amount (must be > 0)")
    payer_id: str = Field(..., min_length=1, description="Member ID of payer")
    category: str = Field(DEFAULT_CATEGORY, description="Expense category")
    split_policy: str = Field("equal", description="equal, exact or percentage")
    participants: Optional[list[str]] = Field(
        None, description="Member IDs sharing the expense (default: all active members)"
    )
    custom_inputs: Optional[dict[str, float]] = Field(
        None, description="member_id -> amount (exact) or percentage (percentage)"
    )


class ExpenseUpdate(BaseModel):
    """Request model for editing an expense. Omitted fields stay unchanged."""
    description: Optional[str] = None
    amount: Optional[float] = Field(None, gt=0)
    payer_id: Optional[str] = None
    category: Optional[str] = None
    split_policy: Optional[str] = None
    participants: Optional[list[str]] = None
    custom_inputs: Optional[dict[str, float]] = None


class SplitResponse(BaseModel):
    """Response model for one expense split row."""
    expense_id: str
    member_id: str
    amount: float
    percentage: Optional[float]


class ExpenseResponse(BaseModel):
    """Response model for expense data."""
    expense_id: str
    group_id: str
    description: str
    amount: float
    category: str
    payer_id: str
    split_policy: str
    created_at: Optional[str]
    updated_at: Optional[str]
    splits: list[SplitResponse] = []


class BalanceResponse(BaseModel):
    """Response model for one member's net balance."""
    member_id: str
    group_id: str
    total_paid: float
    total_owed: float
    net_balance: float


class BalancesResponse(BaseModel):
    """Response model for the balance view."""
    group_id: str
    balances: list[BalanceResponse]


class SettlementResponse(BaseModel):
    """Response model for one suggested transfer."""
    from_member: str
    to_member: str
    amount: float


class SettlementsResponse(BaseModel):
    """Response model for the settlement view."""
    group_id: str
    settlements: list[SettlementResponse]
    transfer_count: int


class AnalyticsResponse(BaseModel):
    """Response model for analytics results."""
    analytics: dict
    warnings: list


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="Group Expense Splitter",
    description="Shared expense tracking and debt simplification API for groups",
    version="1.0.0"
)


# =============================================================================
# Error Handling
# =============================================================================

ERROR_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    IntegrityError: 409,
    StoreUnavailableError: 503,
}


@app.exception_handler(SplitterError)
async def splitter_error_handler(request: Request, exc: SplitterError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    level = logging.ERROR if status_code >= 500 else logging.WARNING
    logger.log(level, "%s %s -> %d %s", request.method, request.url.path, status_code, exc.message)
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()})


# =============================================================================
# Helper Functions
# =============================================================================

def _member_response(m: Member) -> MemberResponse:
    return MemberResponse(**m.to_dict())


def _expense_response(e: Expense, splits: list[ExpenseSplit]) -> ExpenseResponse:
    return ExpenseResponse(
        **e.to_dict(),
        splits=[SplitResponse(**s.to_dict()) for s in splits]
    )


def _float_values(data: dict) -> dict:
    """Convert Decimal values of a flat dict to floats for JSON output."""
    return {k: float(v) if isinstance(v, Decimal) else v for k, v in data.items()}


def _group_state(group_id: str) -> tuple:
    """
    Fetch everything needed for balance calculations.

    Returns:
        tuple: (member_ids, expense dicts, split dicts, balances)
    """
    get_group(group_id)

    member_ids = [m.member_id for m in get_members(group_id)]
    expenses = [e.to_dict() for e in get_expenses(group_id)]
    splits = [s.to_dict() for s in get_splits(group_id)]

    balances = compute_balances(group_id, member_ids, expenses, splits)
    return member_ids, expenses, splits, balances


# =============================================================================
# API Endpoints
# =============================================================================

@app.post("/groups", response_model=GroupResponse, status_code=201)
async def create_new_group(group_data: GroupCreate):
    """Create a new group."""
    group = create_group(
        name=group_data.name,
        description=group_data.description,
        created_by=group_data.created_by,
        avatar=group_data.avatar,
        members=[m.model_dump() for m in group_data.members]
    )
    return GroupResponse(**group.to_dict())


@app.get("/groups/{group_id}", response_model=GroupSummaryResponse)
async def get_group_details(group_id: str):
    """Get a group with its member count, total spend and last activity."""
    group = get_group(group_id)
    members = [m.to_dict() for m in get_members(group_id)]
    expenses = [e.to_dict() for e in get_expenses(group_id)]
    return GroupSummaryResponse(**summarize_group(group.to_dict(), members, expenses))


@app.delete("/groups/{group_id}", status_code=204)
async def delete_existing_group(group_id: str):
    """Delete a group with its members, expenses and splits."""
    delete_group(group_id)


@app.post("/groups/{group_id}/members", response_model=MemberResponse, status_code=201)
async def add_group_member(group_id: str, member_data: MemberCreate):
    """Add a member to a group."""
    member = add_member(group_id=group_id, name=member_data.name, email=member_data.email)
    return _member_response(member)


@app.get("/groups/{group_id}/members", response_model=list[MemberResponse])
async def list_group_members(group_id: str):
    """List all members of a group (former members included)."""
    get_group(group_id)
    return [_member_response(m) for m in get_members(group_id)]


@app.delete("/groups/{group_id}/members/{member_id}", response_model=MemberResponse)
async def remove_group_member(group_id: str, member_id: str):
    """Mark a member as having left the group."""
    return _member_response(remove_member(group_id, member_id))


@app.post("/groups/{group_id}/expenses", response_model=ExpenseResponse, status_code=201)
async def add_group_expense(group_id: str, expense_data: ExpenseCreate):
    """
    Add an expense to a group.

    Request flow:
        1. Validate input using Pydantic model
        2. Compute splits for the chosen policy (splitter.py)
        3. Store expense and splits together (expenses.py)
        4. Return created expense with its splits
    """
    expense, splits = add_expense(
        group_id=group_id,
        description=expense_data.description,
        amount=expense_data.amount,
        payer_id=expense_data.payer_id,
        category=expense_data.category,
        split_policy=expense_data.split_policy,
        participants=expense_data.participants,
        custom_inputs=expense_data.custom_inputs
    )
    return _expense_response(expense, splits)


@app.get("/groups/{group_id}/expenses", response_model=list[ExpenseResponse])
async def list_group_expenses(group_id: str):
    """List all expenses of a group with their splits."""
    get_group(group_id)

    splits_by_expense = {}
    for split in get_splits(group_id):
        splits_by_expense.setdefault(split.expense_id, []).append(split)

    return [
        _expense_response(e, splits_by_expense.get(e.expense_id, []))
        for e in get_expenses(group_id)
    ]


@app.get("/groups/{group_id}/activity", response_model=list[ExpenseResponse])
async def list_recent_activity(group_id: str, limit: int = Query(10, ge=1, le=100)):
    """List the newest expenses of a group, newest first."""
    get_group(group_id)

    splits_by_expense = {}
    for split in get_splits(group_id):
        splits_by_expense.setdefault(split.expense_id, []).append(split)

    return [
        _expense_response(e, splits_by_expense.get(e.expense_id, []))
        for e in get_recent_expenses(group_id, limit)
    ]


@app.get("/groups/{group_id}/expenses/{expense_id}/splits", response_model=list[SplitResponse])
async def list_expense_splits(group_id: str, expense_id: str):
    """List the split rows of one expense."""
    get_expense(group_id, expense_id)
    return [SplitResponse(**s.to_dict()) for s in get_splits(group_id, expense_id)]


@app.patch("/groups/{group_id}/expenses/{expense_id}", response_model=ExpenseResponse)
async def edit_group_expense(group_id: str, expense_id: str, changes: ExpenseUpdate):
    """Edit an expense; amount or split changes recompute its splits."""
    expense, splits = update_expense(
        group_id=group_id,
        expense_id=expense_id,
        description=changes.description,
        amount=changes.amount,
        category=changes.category,
        payer_id=changes.payer_id,
        split_policy=changes.split_policy,
        participants=changes.participants,
        custom_inputs=changes.custom_inputs
    )
    return _expense_response(expense, splits)


@app.delete("/groups/{group_id}/expenses/{expense_id}", status_code=204)
async def delete_group_expense(group_id: str, expense_id: str):
    """Delete an expense and its splits."""
    delete_expense(group_id, expense_id)


@app.get("/groups/{group_id}/balances", response_model=BalancesResponse)
async def get_group_balances(group_id: str):
    """
    Get the net balance of every member.

    Request flow:
        1. Fetch members, expenses and splits from Firestore
        2. Calculate balances (balances.py)
    """
    _, _, _, balances = _group_state(group_id)
    return BalancesResponse(
        group_id=group_id,
        balances=[BalanceResponse(**_float_values(b)) for b in balances.values()]
    )


@app.get("/groups/{group_id}/settlements", response_model=SettlementsResponse)
async def get_group_settlements(group_id: str):
    """
    Get suggested transfers that settle every balance.

    Request flow:
        1. Fetch members, expenses and splits from Firestore
        2. Calculate balances (balances.py)
        3. Plan settlements (settlement.py)

    Settlements are suggestions only and are never stored.
    """
    _, _, _, balances = _group_state(group_id)
    settlements = plan_settlements(balances)
    return SettlementsResponse(
        group_id=group_id,
        settlements=[SettlementResponse(**_float_values(s)) for s in settlements],
        transfer_count=len(settlements)
    )


@app.get("/groups/{group_id}/analytics", response_model=AnalyticsResponse)
async def get_group_analytics(group_id: str):
    """Get spending analytics and warnings for a group."""
    get_group(group_id)
    members = [m.to_dict() for m in get_members(group_id)]
    expenses = [e.to_dict() for e in get_expenses(group_id)]
    return AnalyticsResponse(**generate_analytics(members, expenses))


@app.get("/groups/{group_id}/explanations", response_model=list[dict])
async def get_group_explanations(group_id: str):
    """Get the split rows behind every member's balance."""
    member_ids, expenses, splits, balances = _group_state(group_id)

    explanations = []
    for explanation in explain_all_members(member_ids, expenses, splits, balances):
        explanation = _float_values(explanation)
        explanation["expense_contributions"] = [
            _float_values(c) for c in explanation["expense_contributions"]
        ]
        explanations.append(explanation)
    return explanations


@app.get("/categories")
async def list_categories():
    """Get the expense category lookup table."""
    return [{"value": value, **info} for value, info in CATEGORIES.items()]


# =============================================================================
# Health Check Endpoint
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint to verify API is running."""
    return {"status": "healthy", "service": "Group Expense Splitter"}


# =============================================================================
# Run with: python main.py
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host=settings.API_HOST, port=settings.API_PORT, reload=True)
