"""
Unit tests for net balance aggregation.
"""

import random
from decimal import Decimal

import pytest

from balances import compute_balances
from errors import IntegrityError
from splitter import compute_splits


GROUP = "group_test"


def _expense(expense_id, payer_id, amount, group_id=GROUP):
    return {"expense_id": expense_id, "group_id": group_id, "payer_id": payer_id, "amount": amount}


def _split(expense_id, member_id, amount):
    return {"expense_id": expense_id, "member_id": member_id, "amount": amount}


def _splits_for(expense_id, amount, policy, participants, custom_inputs=None):
    return [
        _split(expense_id, row["member_id"], row["amount"])
        for row in compute_splits(amount, policy, participants, custom_inputs)
    ]


# =============================================================================
# Aggregation
# =============================================================================

class TestComputeBalances:

    def test_one_payer_equal_split(self):
        """A pays 300 split equally among A, B, C."""
        expenses = [_expense("E001", "A", Decimal("300.00"))]
        splits = _splits_for("E001", "300.00", "equal", ["A", "B", "C"])

        balances = compute_balances(GROUP, ["A", "B", "C"], expenses, splits)

        assert balances["A"] == {
            "member_id": "A",
            "group_id": GROUP,
            "total_paid": Decimal("300.00"),
            "total_owed": Decimal("100.00"),
            "net_balance": Decimal("200.00"),
        }
        assert balances["B"]["net_balance"] == Decimal("-100.00")
        assert balances["C"]["net_balance"] == Decimal("-100.00")

    def test_two_payers(self):
        expenses = [
            _expense("E001", "A", Decimal("90.00")),
            _expense("E002", "B", Decimal("60.00")),
        ]
        splits = (
            _splits_for("E001", "90.00", "equal", ["A", "B", "C"])
            + _splits_for("E002", "60.00", "exact", ["B", "C"], {"B": 20, "C": 40})
        )

        balances = compute_balances(GROUP, ["A", "B", "C"], expenses, splits)

        assert {m: b["net_balance"] for m, b in balances.items()} == {
            "A": Decimal("60.00"),
            "B": Decimal("10.00"),
            "C": Decimal("-70.00"),
        }

    def test_members_without_activity_are_included(self):
        expenses = [_expense("E001", "A", 10)]
        splits = [_split("E001", "B", 10)]

        balances = compute_balances(GROUP, ["A", "B", "C", "D"], expenses, splits)

        assert list(balances) == ["A", "B", "C", "D"]
        assert balances["D"]["total_paid"] == Decimal("0")
        assert balances["D"]["net_balance"] == Decimal("0")

    def test_no_expenses(self):
        balances = compute_balances(GROUP, ["A", "B"], [], [])

        assert all(b["net_balance"] == 0 for b in balances.values())

    def test_float_amounts_from_storage(self):
        """Firestore hands amounts back as floats."""
        expenses = [_expense("E001", "A", 100.1)]
        splits = [_split("E001", "A", 33.37), _split("E001", "B", 33.37), _split("E001", "C", 33.36)]

        balances = compute_balances(GROUP, ["A", "B", "C"], expenses, splits)

        assert balances["A"]["net_balance"] == Decimal("66.73")
        assert balances["C"]["total_owed"] == Decimal("33.36")

    def test_inputs_are_not_modified(self):
        expenses = [_expense("E001", "A", 30.0)]
        splits = [_split("E001", "A", 15.0), _split("E001", "B", 15.0)]
        expenses_before = [dict(e) for e in expenses]
        splits_before = [dict(s) for s in splits]

        compute_balances(GROUP, ["A", "B"], expenses, splits)

        assert expenses == expenses_before
        assert splits == splits_before

    @pytest.mark.parametrize("seed", range(5))
    def test_net_balances_sum_to_zero(self, seed):
        rng = random.Random(seed)
        members = [f"M{i:03d}" for i in range(1, 8)]
        expenses, splits = [], []

        for n in range(1, 41):
            expense_id = f"E{n:03d}"
            amount = Decimal(rng.randint(1, 500_000)) / 100
            participants = rng.sample(members, rng.randint(1, len(members)))
            expenses.append(_expense(expense_id, rng.choice(members), amount))
            splits.extend(_splits_for(expense_id, amount, "equal", participants))

        balances = compute_balances(GROUP, members, expenses, splits)

        assert sum(b["net_balance"] for b in balances.values()) == 0
        for balance in balances.values():
            assert balance["net_balance"] == balance["total_paid"] - balance["total_owed"]


# =============================================================================
# Integrity Checks
# =============================================================================

class TestIntegrity:

    def test_unknown_payer(self):
        with pytest.raises(IntegrityError) as exc_info:
            compute_balances(GROUP, ["A"], [_expense("E001", "Z", 10)], [_split("E001", "A", 10)])

        assert exc_info.value.constraint == "unknown_member"

    def test_unknown_split_member(self):
        with pytest.raises(IntegrityError) as exc_info:
            compute_balances(GROUP, ["A"], [_expense("E001", "A", 10)], [_split("E001", "Z", 10)])

        assert exc_info.value.constraint == "unknown_member"

    def test_split_for_unknown_expense(self):
        with pytest.raises(IntegrityError) as exc_info:
            compute_balances(GROUP, ["A"], [], [_split("E999", "A", 10)])

        assert exc_info.value.constraint == "unknown_expense"

    def test_expense_from_another_group(self):
        with pytest.raises(IntegrityError) as exc_info:
            compute_balances(
                GROUP, ["A"],
                [_expense("E001", "A", 10, group_id="group_other")],
                [_split("E001", "A", 10)]
            )

        assert exc_info.value.constraint == "foreign_expense"

    def test_splits_do_not_cover_expense(self):
        with pytest.raises(IntegrityError) as exc_info:
            compute_balances(
                GROUP, ["A", "B"],
                [_expense("E001", "A", 100)],
                [_split("E001", "A", 50), _split("E001", "B", 40)]
            )

        assert exc_info.value.constraint == "split_sum_mismatch"

    def test_expense_without_splits(self):
        with pytest.raises(IntegrityError) as exc_info:
            compute_balances(GROUP, ["A"], [_expense("E001", "A", 100)], [])

        assert exc_info.value.constraint == "split_sum_mismatch"

    def test_malformed_stored_amount(self):
        with pytest.raises(IntegrityError) as exc_info:
            compute_balances(GROUP, ["A"], [_expense("E001", "A", "ten")], [])

        assert exc_info.value.constraint == "invalid_amount"
