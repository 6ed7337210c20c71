"""
Tests for payer, split and participant construction.
"""

import pytest
from decimal import Decimal
from app.core.errors import ValidationError
from app.models.transactions import ParticipantRole, SplitType
from app.schemas.transaction_schema import PayerIn, SplitIn
from app.services.split_service import (
    build_expense_shares,
    build_split_shares,
    check_conservation,
    derive_participants,
    settlement_participants,
    Participant,
)


def payers(*pairs):
    return [PayerIn(user_id=user_id, amount=Decimal(amount)) for user_id, amount in pairs]


class TestBuildSplitShares:

    def test_equal_split(self):
        shares = build_split_shares(Decimal("90"), SplitType.equal, [SplitIn(user_id=u) for u in "ABC"])
        assert [(s.user_id, s.amount) for s in shares] == [
            ("A", Decimal("30.00")), ("B", Decimal("30.00")), ("C", Decimal("30.00"))
        ]

    def test_equal_split_with_remainder(self):
        shares = build_split_shares(Decimal("100"), SplitType.equal, [SplitIn(user_id=u) for u in "ABC"])
        assert [s.amount for s in shares] == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]

    def test_equal_split_rejects_duplicates(self):
        with pytest.raises(ValidationError, match="unique"):
            build_split_shares(Decimal("90"), SplitType.equal, [SplitIn(user_id="A"), SplitIn(user_id="A")])

    def test_exact_split(self):
        splits = [SplitIn(user_id="A", amount=Decimal("70")), SplitIn(user_id="B", amount=Decimal("30"))]
        shares = build_split_shares(Decimal("100"), SplitType.exact, splits)
        assert [s.amount for s in shares] == [Decimal("70.00"), Decimal("30.00")]

    def test_exact_split_one_cent_short(self):
        splits = [SplitIn(user_id="A", amount=Decimal("50")), SplitIn(user_id="B", amount=Decimal("49.99"))]
        with pytest.raises(ValidationError, match="total split amount"):
            build_split_shares(Decimal("100"), SplitType.exact, splits)

    def test_exact_split_requires_amounts(self):
        with pytest.raises(ValidationError):
            build_split_shares(Decimal("100"), SplitType.exact, [SplitIn(user_id="A")])

    def test_percentage_split_sums_exactly(self):
        splits = [SplitIn(user_id=u, percentage=Decimal("33.3333")) for u in "AB"]
        splits.append(SplitIn(user_id="C", percentage=Decimal("33.3334")))
        shares = build_split_shares(Decimal("100"), SplitType.percentage, splits)
        assert sum(s.amount for s in shares) == Decimal("100.00")
        assert shares[0].percentage == Decimal("33.3333")

    def test_percentage_remainder_skips_zero_percent_line(self):
        splits = [
            SplitIn(user_id="A", percentage=Decimal("0")),
            SplitIn(user_id="B", percentage=Decimal("60")),
            SplitIn(user_id="C", percentage=Decimal("39.99")),
        ]
        shares = build_split_shares(Decimal("100"), SplitType.percentage, splits)
        assert [s.amount for s in shares] == [Decimal("0.00"), Decimal("60.01"), Decimal("39.99")]

    def test_percentage_excess_cent_taken_from_largest_line(self):
        splits = [
            SplitIn(user_id="A", percentage=Decimal("0")),
            SplitIn(user_id="B", percentage=Decimal("60")),
            SplitIn(user_id="C", percentage=Decimal("40.01")),
        ]
        shares = build_split_shares(Decimal("100"), SplitType.percentage, splits)
        assert [s.amount for s in shares] == [Decimal("0.00"), Decimal("59.99"), Decimal("40.01")]

    def test_percentage_split_must_total_100(self):
        splits = [SplitIn(user_id="A", percentage=Decimal("50")), SplitIn(user_id="B", percentage=Decimal("40"))]
        with pytest.raises(ValidationError, match="percentages"):
            build_split_shares(Decimal("100"), SplitType.percentage, splits)

    def test_no_splits(self):
        with pytest.raises(ValidationError):
            build_split_shares(Decimal("100"), SplitType.equal, [])


class TestBuildExpenseShares:

    def test_payers_must_cover_amount(self):
        with pytest.raises(ValidationError, match="total paid amount"):
            build_expense_shares(
                Decimal("100"), SplitType.equal, payers(("A", "60")), [SplitIn(user_id="A")]
            )

    def test_requires_a_payer(self):
        with pytest.raises(ValidationError, match="payer"):
            build_expense_shares(Decimal("100"), SplitType.equal, [], [SplitIn(user_id="A")])

    def test_multiple_payers(self):
        payer_shares, split_shares = build_expense_shares(
            Decimal("100"), SplitType.equal, payers(("A", "60"), ("B", "40")), [SplitIn(user_id="C")]
        )
        assert [p.amount for p in payer_shares] == [Decimal("60.00"), Decimal("40.00")]
        assert split_shares[0].amount == Decimal("100.00")


class TestParticipants:

    def test_roles_and_order(self):
        payer_shares, split_shares = build_expense_shares(
            Decimal("90"), SplitType.equal, payers(("A", "90")), [SplitIn(user_id=u) for u in "ABC"]
        )
        participants = derive_participants(payer_shares, split_shares)
        assert [(p.user_id, p.net_amount, p.role) for p in participants] == [
            ("A", Decimal("60.00"), ParticipantRole.both),
            ("B", Decimal("-30.00"), ParticipantRole.split),
            ("C", Decimal("-30.00"), ParticipantRole.split),
        ]
        check_conservation(participants)

    def test_settlement_participants(self):
        participants = settlement_participants("B", "A", Decimal("30"))
        assert [(p.user_id, p.net_amount, p.role) for p in participants] == [
            ("B", Decimal("30.00"), ParticipantRole.payer),
            ("A", Decimal("-30.00"), ParticipantRole.payee),
        ]

    def test_conservation_violation(self):
        with pytest.raises(ValidationError, match="does not balance"):
            check_conservation([
                Participant("A", Decimal("10"), ParticipantRole.payer),
                Participant("B", Decimal("-9.98"), ParticipantRole.split),
            ])
