"""
Tests for analytics and balance explanations.
"""

from decimal import Decimal

from analytics import generate_analytics, summarize_group
from balances import compute_balances
from utils import explain_all_members, explain_member_balance, generate_id


MEMBERS = [
    {"member_id": "M001", "name": "Alice"},
    {"member_id": "M002", "name": "Bob"},
    {"member_id": "M003", "name": "Carol"},
]


def _expense(expense_id, payer_id, amount, category, created_at="2024-03-10T12:00:00+00:00"):
    return {
        "expense_id": expense_id,
        "group_id": "group_test",
        "description": f"{category} {expense_id}",
        "payer_id": payer_id,
        "amount": amount,
        "category": category,
        "split_policy": "equal",
        "created_at": created_at,
    }


# =============================================================================
# Analytics
# =============================================================================

class TestGenerateAnalytics:

    def test_breakdowns(self):
        expenses = [
            _expense("E001", "M001", 60.0, "food"),
            _expense("E002", "M002", 30.0, "travel", created_at="2024-04-01T08:00:00+00:00"),
            _expense("E003", "M003", 10.0, "food"),
        ]

        result = generate_analytics(MEMBERS, expenses)["analytics"]

        assert result["total_amount"] == 100.0
        assert result["expense_count"] == 3
        assert result["category_breakdown"] == [
            {"category": "food", "amount": 70.0, "percentage": 70.0},
            {"category": "travel", "amount": 30.0, "percentage": 30.0},
        ]
        assert result["monthly_breakdown"] == [
            {"month": "2024-03", "amount": 70.0},
            {"month": "2024-04", "amount": 30.0},
        ]
        assert result["member_breakdown"] == [
            {"member_id": "M001", "amount": 60.0},
            {"member_id": "M002", "amount": 30.0},
            {"member_id": "M003", "amount": 10.0},
        ]

    def test_warnings(self):
        expenses = [
            _expense("E001", "M001", 60.0, "food"),
            _expense("E002", "M002", 40.0, "travel"),
        ]

        warnings = generate_analytics(MEMBERS, expenses)["warnings"]

        assert len(warnings) == 2
        assert "Alice paid 60.0%" in warnings[0]
        assert "'food' accounts for 60.0%" in warnings[1]

    def test_no_warnings_when_spread_out(self):
        expenses = [
            _expense("E001", "M001", 35.0, "food"),
            _expense("E002", "M002", 35.0, "travel"),
            _expense("E003", "M003", 30.0, "shopping"),
        ]

        assert generate_analytics(MEMBERS, expenses)["warnings"] == []

    def test_single_member_is_not_warned_about_paying(self):
        expenses = [_expense("E001", "M001", 10.0, "food"), _expense("E002", "M001", 10.0, "travel")]

        assert generate_analytics(MEMBERS[:1], expenses)["warnings"] == []

    def test_no_expenses(self):
        result = generate_analytics(MEMBERS, [])

        assert result["analytics"]["total_amount"] == 0.0
        assert result["analytics"]["category_breakdown"] == []
        assert result["warnings"] == []


# =============================================================================
# Group Summary
# =============================================================================

GROUP = {"group_id": "group_test", "name": "Goa Trip", "created_at": "2024-03-01T09:00:00+00:00"}


class TestSummarizeGroup:

    def test_summary(self):
        members = [dict(m, left_at=None) for m in MEMBERS]
        members[2]["left_at"] = "2024-03-12T08:00:00+00:00"
        expenses = [
            _expense("E001", "M001", 10.1, "food", created_at="2024-03-10T12:00:00+00:00"),
            _expense("E002", "M002", 20.2, "travel", created_at="2024-03-11T12:00:00+00:00"),
        ]

        summary = summarize_group(GROUP, members, expenses)

        assert summary["name"] == "Goa Trip"
        assert summary["member_count"] == 2
        assert summary["expense_count"] == 2
        assert summary["total_expenses"] == 30.3
        assert summary["last_activity"] == "2024-03-11T12:00:00+00:00"

    def test_no_expenses_falls_back_to_creation(self):
        summary = summarize_group(GROUP, [], [])

        assert summary["member_count"] == 0
        assert summary["total_expenses"] == 0.0
        assert summary["last_activity"] == GROUP["created_at"]


# =============================================================================
# Explanations
# =============================================================================

class TestExplanations:

    def _state(self):
        expenses = [_expense("E001", "M001", 90.0, "food"), _expense("E002", "M002", 30.0, "travel")]
        splits = [
            {"expense_id": "E001", "member_id": "M001", "amount": 30.0, "percentage": None},
            {"expense_id": "E001", "member_id": "M002", "amount": 30.0, "percentage": None},
            {"expense_id": "E001", "member_id": "M003", "amount": 30.0, "percentage": None},
            {"expense_id": "E002", "member_id": "M003", "amount": 30.0, "percentage": None},
        ]
        balances = compute_balances("group_test", ["M001", "M002", "M003"], expenses, splits)
        return expenses, splits, balances

    def test_member_breakdown(self):
        expenses, splits, balances = self._state()

        explanation = explain_member_balance("M003", expenses, splits, balances)

        assert [c["expense_id"] for c in explanation["expense_contributions"]] == ["E001", "E002"]
        assert explanation["expense_contributions"][1]["payer_id"] == "M002"
        assert explanation["expense_contributions"][1]["member_share"] == 30.0
        assert explanation["total_owed"] == Decimal("60.00")
        assert explanation["net_balance"] == Decimal("-60.00")

    def test_shares_add_up_to_total_owed(self):
        expenses, splits, balances = self._state()

        for explanation in explain_all_members(["M003", "M001", "M002"], expenses, splits, balances):
            shares = sum(Decimal(str(c["member_share"])) for c in explanation["expense_contributions"])
            assert shares == explanation["total_owed"]

    def test_all_members_sorted(self):
        expenses, splits, balances = self._state()

        explanations = explain_all_members(["M003", "M001", "M002"], expenses, splits, balances)

        assert [e["member_id"] for e in explanations] == ["M001", "M002", "M003"]

    def test_member_without_activity(self):
        explanation = explain_member_balance("M009", [], [], {})

        assert explanation["expense_contributions"] == []
        assert explanation["net_balance"] == Decimal("0")


def test_generate_id():
    assert generate_id("M", 1) == "M001"
    assert generate_id("E", 42) == "E042"
    assert generate_id("E", 1000) == "E1000"
