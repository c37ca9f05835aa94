"""
Settlement Module

This module handles the settlement calculations for the group expense
splitter application.

Features:
    - Convert net balances into settlement transfers (debt simplification)
    - Reduce the number of transfers using a greedy algorithm
    - Deterministic ordering (ties broken by member_id)
    - Handle rounding safely

Data Model:
    Input - balances (dict keyed by member_id), values either:
        - net_balance as a number, OR
        - a balance dict from compute_balances() with a net_balance key
        (positive = owed money, negative = owes money)

    Output - ordered list of settlement transfers:
        - from_member: string (debtor who pays)
        - to_member: string (creditor who receives)
        - amount: Decimal (2 decimal places, always > 0)

Functions:
    plan_settlements: Convert balances into settlement transfers.
    apply_settlements: Apply transfers to balances (used to verify a plan).

Notes:
    The greedy method always terminates, settles every balance to within a
    cent (exactly, for balances in whole cents that sum to zero) and
    produces at most (members - 1) transfers, but it is not guaranteed to
    find the minimum number of transfers. The exact minimum is NP-hard in
    general.
"""

import heapq
import logging
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from errors import IntegrityError, ValidationError
from splitter import CENT, EPSILON, to_decimal

logger = logging.getLogger(__name__)


def _net_balances(balances: dict) -> dict:
    """Extract net balances as Decimals, rounded to cents, from numbers or balance dicts."""
    nets = {}
    for member_id, balance in balances.items():
        value = balance["net_balance"] if isinstance(balance, dict) else balance
        try:
            nets[member_id] = to_decimal(value, f"net balance of '{member_id}'").quantize(
                CENT, rounding=ROUND_HALF_UP
            )
        except ValidationError as e:
            raise IntegrityError(e.message, "invalid_amount")
        except InvalidOperation:
            raise IntegrityError(f"net balance of '{member_id}' is too large: {value}", "invalid_amount")
    return nets


def plan_settlements(balances: dict) -> list[dict]:
    """
    Convert net balances into settlement transfers.

    Uses a greedy algorithm:
        1. Round every balance to cents
        2. Separate members into debtors (net_balance < 0) and creditors
           (net_balance > 0), ignoring zero balances
        3. Take the largest debtor and the largest creditor
           (ties broken by member_id, ascending)
        4. Transfer the smaller of the two absolute balances
        5. Put back whichever party still has 0.01 or more outstanding
        6. Repeat until no debtors or creditors remain

    Args:
        balances: Dictionary keyed by member_id; each value is either the
            net balance or a dict with a net_balance key.

    Returns:
        list[dict]: Ordered settlement transfers, each containing:
            - from_member: string (debtor who pays)
            - to_member: string (creditor who receives)
            - amount: Decimal (2 decimal places, > 0)

    Raises:
        IntegrityError: If the balances do not sum to zero (within 0.01),
            e.g. a single member with a non-zero balance.

    Notes:
        - Applying the transfers leaves every balance within 0.01 of zero,
          and exactly at zero when the cent-rounded balances sum to zero
        - Does NOT modify input balances
        - Same input always yields the same transfer list
        - Does NOT write to Firebase
    """
    # Work on cent-rounded copies so emitted amounts match what is moved
    nets = _net_balances(balances)

    # Balances of a consistent group cancel out
    total = sum(nets.values(), Decimal("0"))
    if abs(total) > EPSILON:
        raise IntegrityError(
            f"balances sum to {total}, expected 0",
            "unbalanced_group"
        )

    # Heaps of (-amount, member_id): largest amount first, then smallest id
    # Debtors: net_balance < 0 (they owe money)
    # Creditors: net_balance > 0 (they are owed money)
    debtors = [(net, member_id) for member_id, net in nets.items() if net <= -EPSILON]
    creditors = [(-net, member_id) for member_id, net in nets.items() if net >= EPSILON]
    heapq.heapify(debtors)
    heapq.heapify(creditors)

    settlements = []

    # Greedy settlement: match largest debtor with largest creditor
    while debtors and creditors:
        neg_debt, debtor_id = heapq.heappop(debtors)
        neg_credit, creditor_id = heapq.heappop(creditors)
        debt, credit = -neg_debt, -neg_credit

        # Settle the smaller of the two balances
        amount = min(debt, credit)
        settlements.append({
            "from_member": debtor_id,
            "to_member": creditor_id,
            "amount": amount
        })

        # Whoever still has money outstanding goes back on the heap
        if debt - amount >= EPSILON:
            heapq.heappush(debtors, (amount - debt, debtor_id))
        if credit - amount >= EPSILON:
            heapq.heappush(creditors, (amount - credit, creditor_id))

    logger.debug("Planned %d transfers for %d balances", len(settlements), len(nets))
    return settlements


def apply_settlements(balances: dict, settlements: list[dict]) -> dict:
    """
    Apply settlement transfers to net balances.

    Args:
        balances: Dictionary keyed by member_id (numbers or balance dicts).
        settlements: Transfers as returned by plan_settlements().

    Returns:
        dict: New dict of member_id -> remaining net balance (Decimal,
        rounded to cents). After applying a full plan every value is
        within 0.01 of zero.
    """
    remaining = _net_balances(balances)
    for transfer in settlements:
        amount = to_decimal(transfer["amount"])
        remaining[transfer["from_member"]] += amount
        remaining[transfer["to_member"]] -= amount
    return remaining
