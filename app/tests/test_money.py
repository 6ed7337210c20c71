"""
Unit tests for the money primitives: rounding, tolerance and exact splitting.
"""

import pytest
from decimal import Decimal
from app.utils.money import (
    amounts_equal,
    distribute_remainder,
    is_zero,
    percentage_to_amount,
    round_decimal,
    split_equally,
    sums_match,
    to_decimal,
    validate_balance_sum,
)


class TestRoundDecimal:

    def test_round_to_cents(self):
        assert round_decimal(Decimal("43.333333")) == Decimal("43.33")
        assert round_decimal(Decimal("43.336666")) == Decimal("43.34")

    def test_bankers_rounding(self):
        # ROUND_HALF_EVEN: ties go to the even cent
        assert round_decimal(Decimal("100.005")) == Decimal("100.00")
        assert round_decimal(Decimal("100.015")) == Decimal("100.02")

    def test_accepts_strings_and_ints(self):
        assert round_decimal("10.1") == Decimal("10.10")
        assert round_decimal(7) == Decimal("7.00")


class TestToDecimal:

    def test_float_goes_through_str(self):
        assert to_decimal(0.1) == Decimal("0.1")

    @pytest.mark.parametrize("value", ["abc", "NaN", "Infinity"])
    def test_rejects_non_numbers(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)


class TestTolerance:

    def test_amounts_equal_within_one_cent(self):
        assert amounts_equal(Decimal("100.00"), Decimal("99.99"))
        assert not amounts_equal(Decimal("100.00"), Decimal("99.98"))

    def test_sums_match_is_strict(self):
        assert sums_match(Decimal("100.004"), Decimal("100"))
        assert not sums_match(Decimal("99.99"), Decimal("100"))

    def test_is_zero(self):
        assert is_zero(Decimal("0.01"))
        assert is_zero(Decimal("-0.01"))
        assert not is_zero(Decimal("0.02"))


class TestSplitEqually:

    def test_remainder_goes_to_first_recipients(self):
        shares = split_equally(Decimal("100"), ["a", "b", "c"])
        assert shares == {"a": Decimal("33.34"), "b": Decimal("33.33"), "c": Decimal("33.33")}

    def test_shares_sum_exactly(self):
        shares = split_equally(Decimal("0.05"), ["a", "b", "c"])
        assert sum(shares.values()) == Decimal("0.05")
        assert max(shares.values()) - min(shares.values()) <= Decimal("0.01")

    def test_even_split(self):
        assert split_equally(Decimal("90"), ["a", "b", "c"]) == {
            "a": Decimal("30.00"), "b": Decimal("30.00"), "c": Decimal("30.00")
        }

    def test_empty_recipients(self):
        with pytest.raises(ValueError):
            split_equally(Decimal("10"), [])

    def test_negative_total(self):
        with pytest.raises(ValueError):
            split_equally(Decimal("-10"), ["a"])


class TestPercentages:

    def test_percentage_to_amount(self):
        assert percentage_to_amount(Decimal("33.3333"), Decimal("100")) == Decimal("33.33")

    def test_distribute_remainder_adds_missing_cent(self):
        shares = [Decimal("33.33"), Decimal("33.33"), Decimal("33.33")]
        assert distribute_remainder(shares, Decimal("100")) == [
            Decimal("33.34"), Decimal("33.33"), Decimal("33.33")
        ]

    def test_distribute_remainder_removes_extra_cent(self):
        shares = [Decimal("50.01"), Decimal("50.00")]
        assert distribute_remainder(shares, Decimal("100")) == [Decimal("50.00"), Decimal("50.00")]

    def test_weighted_remainder_skips_zero_weights(self):
        shares = [Decimal("0.00"), Decimal("60.00"), Decimal("39.99")]
        weights = [Decimal("0"), Decimal("60"), Decimal("39.99")]
        assert distribute_remainder(shares, Decimal("100"), weights=weights) == [
            Decimal("0.00"), Decimal("60.01"), Decimal("39.99")
        ]

    def test_never_pushes_a_share_below_zero(self):
        shares = [Decimal("0.00"), Decimal("0.01"), Decimal("0.01")]
        assert distribute_remainder(shares, Decimal("0.00")) == [
            Decimal("0.00"), Decimal("0.00"), Decimal("0.00")
        ]


class TestValidateBalanceSum:

    def test_valid_balanced_sum(self):
        validate_balance_sum({"A": Decimal("50"), "B": Decimal("-50")})

    def test_valid_within_tolerance(self):
        validate_balance_sum({"A": Decimal("50.01"), "B": Decimal("-50")})

    def test_invalid_outside_tolerance(self):
        with pytest.raises(ValueError, match="Balances not zero-sum"):
            validate_balance_sum({"A": Decimal("50"), "B": Decimal("-49")})
