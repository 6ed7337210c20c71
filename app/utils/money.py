"""
Money and rounding primitives.

All ledger arithmetic runs on Decimal values quantized to cents. Comparisons
between amounts that went through rounding use a fixed tolerance of one cent.
"""

from decimal import Decimal, ROUND_HALF_EVEN, InvalidOperation
from typing import Dict, List, Optional, Sequence, Union

CENT = Decimal("0.01")
TOLERANCE = Decimal("0.01")
HUNDRED = Decimal("100")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """
    Convert a user supplied number to Decimal without going through binary floats.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round_decimal(value: Number, precision: Decimal = CENT) -> Decimal:
    """
    Round a value to the given precision (cents by default) with banker's rounding.

    Example:
        >>> round_decimal(Decimal("43.333333"))
        Decimal('43.33')
    """
    return to_decimal(value).quantize(precision, rounding=ROUND_HALF_EVEN)


def amounts_equal(a: Number, b: Number, tolerance: Decimal = TOLERANCE) -> bool:
    """True when two amounts differ by at most the tolerance"""
    return abs(to_decimal(a) - to_decimal(b)) <= tolerance


def is_zero(value: Number, tolerance: Decimal = TOLERANCE) -> bool:
    return abs(to_decimal(value)) <= tolerance


def sums_match(total: Number, expected: Number, tolerance: Decimal = TOLERANCE) -> bool:
    """
    True when a sum of line amounts is strictly closer than the tolerance to the
    expected total. For cent-rounded lines this means the sums agree exactly, so
    splits of 99.99 against a 100.00 expense are rejected.
    """
    return abs(round_decimal(total) - round_decimal(expected)) < tolerance


def percentage_to_amount(percentage: Number, total: Number) -> Decimal:
    """Share of total for a percentage in [0, 100], rounded to cents"""
    return round_decimal(to_decimal(percentage) / HUNDRED * to_decimal(total))


def distribute_remainder(
    shares: List[Decimal], total: Number, weights: Optional[Sequence[Number]] = None
) -> List[Decimal]:
    """
    Adjust rounded shares one cent at a time until they sum to total exactly.

    Without weights the adjustment starts with the first share. With weights
    (percentages, for instance) only shares with a non-zero weight are adjusted,
    largest weight first and ties to the earlier share. A share is never pushed
    below zero.

    The adjustment wraps around the eligible shares, so the difference between
    any two of them never grows by more than one cent.

    Raises:
        ValueError: If the shares cannot reach total without going negative
    """
    if not shares:
        return []
    total = round_decimal(total)
    adjusted = list(shares)

    order = list(range(len(adjusted)))
    if weights is not None:
        weighted = [index for index in order if to_decimal(weights[index]) != 0]
        order = sorted(weighted or order, key=lambda index: -to_decimal(weights[index]))

    remainder = total - sum(adjusted)
    step = CENT if remainder > 0 else -CENT
    while remainder != 0:
        moved = False
        for index in order:
            if remainder == 0:
                break
            if step < 0 and adjusted[index] < CENT:
                continue
            adjusted[index] += step
            remainder -= step
            moved = True
        if not moved:
            raise ValueError(f"cannot distribute {remainder} without negative shares")
    return adjusted


def split_equally(total: Number, recipients: Sequence[str]) -> Dict[str, Decimal]:
    """
    Split total among recipients so that the shares add up to total exactly.

    Each recipient first gets round(total / N, 2); the rounding remainder is
    then handed out cent by cent from the first recipient on.

    Example:
        >>> split_equally(Decimal("100"), ["a", "b", "c"])
        {'a': Decimal('33.34'), 'b': Decimal('33.33'), 'c': Decimal('33.33')}

    Raises:
        ValueError: If recipients is empty or total is negative
    """
    if not recipients:
        raise ValueError("recipients must not be empty")
    total = round_decimal(total)
    if total < 0:
        raise ValueError("total must be non-negative")

    base_share = round_decimal(total / Decimal(len(recipients)))
    shares = distribute_remainder([base_share] * len(recipients), total)

    result: Dict[str, Decimal] = {}
    for recipient, share in zip(recipients, shares):
        # Duplicate recipients accumulate their shares
        result[recipient] = result.get(recipient, Decimal("0")) + share
    return result


def validate_balance_sum(balances: Dict[str, Decimal], tolerance: Decimal = TOLERANCE) -> None:
    """
    Validate that the sum of all balances is approximately zero.

    Raises:
        ValueError: If the sum of balances exceeds the tolerance
    """
    total = sum(balances.values(), Decimal("0"))
    if abs(total) > tolerance:
        raise ValueError(
            f"Balances not zero-sum: total={total}, tolerance={tolerance}. "
            f"This indicates unbalanced ledger data."
        )
