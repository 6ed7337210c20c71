"""
Unit Tests for Min-Cash-Flow Algorithm

Tests cover:
- Basic creditor/debtor matching
- Deterministic tie-breaking by user id
- Edge cases (zero balances, single user, large groups)
- Validation and error handling
- Rounding tolerance
"""

import pytest
from decimal import Decimal
from app.utils.min_cash_flow import min_cash_flow, min_cash_flow_detailed
from app.tests.conftest import verify_settlements_settle_debts


class TestMinCashFlow:

    def test_one_creditor_two_debtors(self):
        """Creditor A is paid by both debtors, lowest id first on ties."""
        balances = {"A": Decimal("60"), "B": Decimal("-30"), "C": Decimal("-30")}
        assert min_cash_flow(balances) == [
            {"from": "B", "to": "A", "amount": Decimal("30.00")},
            {"from": "C", "to": "A", "amount": Decimal("30.00")},
        ]

    def test_largest_pair_first(self):
        balances = {"A": Decimal("10"), "B": Decimal("50"), "C": Decimal("-45"), "D": Decimal("-15")}
        settlements = min_cash_flow(balances)
        assert settlements[0] == {"from": "C", "to": "B", "amount": Decimal("45.00")}
        verify_settlements_settle_debts(balances, settlements)

    def test_input_order_does_not_matter(self):
        forward = {"A": Decimal("66.67"), "B": Decimal("-10.00"), "C": Decimal("-43.33"), "D": Decimal("-13.34")}
        backward = dict(reversed(list(forward.items())))
        assert min_cash_flow(forward) == min_cash_flow(backward)

    def test_at_most_n_minus_one_transfers(self):
        balances = {
            "A": Decimal("40"), "B": Decimal("25.50"), "C": Decimal("-10"),
            "D": Decimal("-20.25"), "E": Decimal("-35.25"),
        }
        settlements = min_cash_flow(balances)
        assert len(settlements) <= len(balances) - 1
        assert all(s["amount"] > Decimal("0.01") for s in settlements)
        verify_settlements_settle_debts(balances, settlements)

    def test_cent_scale_creditor_is_paid(self):
        """A creditor just outside tolerance is paid even when every debtor is inside it."""
        balances = {"A": Decimal("0.02"), "B": Decimal("-0.01"), "C": Decimal("-0.01")}
        settlements = min_cash_flow(balances)
        assert settlements == [{"from": "B", "to": "A", "amount": Decimal("0.01")}]
        verify_settlements_settle_debts(balances, settlements)

    def test_cent_scale_debtor_pays(self):
        balances = {"A": Decimal("0.01"), "B": Decimal("0.01"), "C": Decimal("-0.02")}
        settlements = min_cash_flow(balances)
        assert settlements == [{"from": "C", "to": "A", "amount": Decimal("0.01")}]
        verify_settlements_settle_debts(balances, settlements)

    def test_all_settled(self):
        assert min_cash_flow({"A": Decimal("0"), "B": Decimal("0.01"), "C": Decimal("-0.01")}) == []

    def test_single_user(self):
        assert min_cash_flow({"A": Decimal("0")}) == []

    def test_empty(self):
        assert min_cash_flow({}) == []

    def test_not_zero_sum(self):
        with pytest.raises(ValueError, match="Balances not zero-sum"):
            min_cash_flow({"A": Decimal("50"), "B": Decimal("-49")})

    def test_max_iterations_guard(self):
        balances = {"A": Decimal("30"), "B": Decimal("-10"), "C": Decimal("-20")}
        with pytest.raises(RuntimeError, match="max_iterations"):
            min_cash_flow(balances, max_iterations=1)

    def test_large_group(self):
        balances = {f"user{i:03d}": Decimal(i % 7) - Decimal("3") for i in range(70)}
        balances["user000"] -= sum(balances.values())
        settlements = min_cash_flow(balances)
        verify_settlements_settle_debts(balances, settlements)


class TestMinCashFlowDetailed:

    def test_logs_each_step(self):
        settlements, logs = min_cash_flow_detailed({"A": Decimal("60"), "B": Decimal("-30"), "C": Decimal("-30")})
        assert len(settlements) == 2
        assert any("B pays A 30.00" in line for line in logs)
        assert logs[-1] == "Total settlements: 2"
