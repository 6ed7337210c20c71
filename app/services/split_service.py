"""
Construction of payer, split and participant lines for a transaction.

Raw split specifications from the caller are turned into validated,
normalized lines here; nothing in this module touches the database.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from app.core.errors import ValidationError
from app.models.transactions import SplitType, ParticipantRole
from app.utils.money import (
    HUNDRED, TOLERANCE, distribute_remainder, percentage_to_amount, round_decimal,
    split_equally, sums_match,
)


@dataclass
class Share:
    user_id: str
    amount: Decimal
    percentage: Optional[Decimal] = None


@dataclass
class Participant:
    user_id: str
    net_amount: Decimal
    role: ParticipantRole


def build_payer_shares(amount: Decimal, payers: Sequence) -> List[Share]:
    """Validate payer lines: at least one, and they must add up to the total"""
    if not payers:
        raise ValidationError("at least one payer is required")
    shares = [Share(user_id=payer.user_id, amount=round_decimal(payer.amount)) for payer in payers]
    if any(share.amount <= 0 for share in shares):
        raise ValidationError("payer amounts must be positive")
    total_paid = sum((share.amount for share in shares), Decimal("0"))
    if not sums_match(total_paid, amount):
        raise ValidationError("total paid amount must equal transaction amount")
    return shares


def build_split_shares(amount: Decimal, split_type: SplitType, splits: Sequence) -> List[Share]:
    """
    Turn split specifications into owed amounts according to the split type.

    - equal: amounts are computed, the rounding remainder goes to the first recipients
    - exact: caller amounts, which must add up to the total
    - percentage: caller percentages, which must add up to 100 within 0.01;
      converted amounts are rounded and the cent remainder goes to the largest
      non-zero percentages, so a 0% line always owes nothing
    """
    if not splits:
        raise ValidationError("at least one split is required")

    if split_type == SplitType.equal:
        user_ids = [split.user_id for split in splits]
        if len(set(user_ids)) != len(user_ids):
            raise ValidationError("equal split recipients must be unique")
        amounts = split_equally(amount, user_ids)
        shares = [Share(user_id=user_id, amount=amounts[user_id]) for user_id in user_ids]

    elif split_type == SplitType.exact:
        if any(split.amount is None for split in splits):
            raise ValidationError("exact splits require an amount for every user")
        shares = [Share(user_id=split.user_id, amount=round_decimal(split.amount)) for split in splits]

    elif split_type == SplitType.percentage:
        if any(split.percentage is None for split in splits):
            raise ValidationError("percentage splits require a percentage for every user")
        total_percentage = sum((Decimal(split.percentage) for split in splits), Decimal("0"))
        if abs(total_percentage - HUNDRED) > TOLERANCE:
            raise ValidationError(f"percentages must add up to 100, got {total_percentage}")
        percentages = [Decimal(split.percentage) for split in splits]
        if any(percentage < 0 for percentage in percentages):
            raise ValidationError("percentages must not be negative")
        try:
            amounts = distribute_remainder(
                [percentage_to_amount(percentage, amount) for percentage in percentages],
                amount,
                weights=percentages,
            )
        except ValueError as e:
            raise ValidationError(str(e))
        shares = [
            Share(user_id=split.user_id, amount=share_amount, percentage=Decimal(split.percentage))
            for split, share_amount in zip(splits, amounts)
        ]

    else:
        raise ValidationError(f"unsupported split type: {split_type}")

    if any(share.amount < 0 for share in shares):
        raise ValidationError("split amounts must not be negative")
    total_split = sum((share.amount for share in shares), Decimal("0"))
    if not sums_match(total_split, amount):
        raise ValidationError("total split amount must equal transaction amount")
    return shares


def build_expense_shares(
    amount: Decimal, split_type: SplitType, payers: Sequence, splits: Sequence
) -> Tuple[List[Share], List[Share]]:
    """Validated (payers, splits) for an expense of the given total"""
    amount = round_decimal(amount)
    if amount <= 0:
        raise ValidationError("amount must be greater than zero")
    return build_payer_shares(amount, payers), build_split_shares(amount, split_type, splits)


def derive_participants(payers: Sequence[Share], splits: Sequence[Share]) -> List[Participant]:
    """
    Net involvement per user, in order of first appearance.

    net_amount = amount paid - amount owed; role is payer, split or both.
    """
    participants: Dict[str, Participant] = {}
    for payer in payers:
        existing = participants.get(payer.user_id)
        if existing:
            existing.net_amount += payer.amount
        else:
            participants[payer.user_id] = Participant(payer.user_id, payer.amount, ParticipantRole.payer)

    for split in splits:
        existing = participants.get(split.user_id)
        if existing:
            existing.net_amount -= split.amount
            if existing.role == ParticipantRole.payer:
                existing.role = ParticipantRole.both
        else:
            participants[split.user_id] = Participant(split.user_id, -split.amount, ParticipantRole.split)

    return list(participants.values())


def settlement_participants(payer_id: str, payee_id: str, amount: Decimal) -> List[Participant]:
    """The payer transfers money out (+amount), the payee receives it (-amount)"""
    amount = round_decimal(amount)
    return [
        Participant(payer_id, amount, ParticipantRole.payer),
        Participant(payee_id, -amount, ParticipantRole.payee),
    ]


def check_conservation(participants: Sequence[Participant]) -> None:
    """Net amounts of a single transaction must cancel out"""
    total = sum((participant.net_amount for participant in participants), Decimal("0"))
    if abs(total) > TOLERANCE:
        raise ValidationError(f"transaction does not balance: participants net to {total}")
