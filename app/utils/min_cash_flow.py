"""
Min-Cash-Flow Algorithm Module

This module computes suggested settlements that close out the net balances of
a group with a small number of pairwise transfers.

The algorithm works by:
1. Ordering users by ascending user id (the working set is never an unordered map)
2. Picking the largest creditor (most positive balance) and the largest debtor
   (most negative balance); ties go to the lowest user id
3. Transferring min(|debt|, credit) from the debtor to the creditor
4. Repeating until both extremes are within tolerance of zero, so a creditor
   of 0.02 is still paid by debtors of 0.01 each

Each step settles at least one of the two users completely, so a snapshot with
N non-zero balances yields at most N - 1 transfers. The result is deterministic
for a given snapshot, but it is a greedy heuristic and not always the
theoretical minimum.

Example Usage:
    from app.utils.min_cash_flow import min_cash_flow

    balances = {"A": Decimal("60"), "B": Decimal("-30"), "C": Decimal("-30")}
    settlements = min_cash_flow(balances)

    # Result: [{"from": "B", "to": "A", "amount": Decimal("30.00")},
    #          {"from": "C", "to": "A", "amount": Decimal("30.00")}]
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from app.utils.money import TOLERANCE, round_decimal, validate_balance_sum

# Configure logger
logger = logging.getLogger(__name__)


def _extremes(working: List[Tuple[str, Decimal]]) -> Tuple[Optional[int], Optional[int]]:
    """
    Return the positions of the largest creditor and the largest debtor.

    The working list is sorted by user id and only a strictly larger amount
    replaces the current pick, so ties resolve to the lowest user id.
    """
    creditor, debtor = None, None
    max_credit, max_debt = Decimal("0"), Decimal("0")
    for index, (_, balance) in enumerate(working):
        if balance > max_credit:
            max_credit = balance
            creditor = index
        if balance < max_debt:
            max_debt = balance
            debtor = index
    return creditor, debtor


def min_cash_flow(
    balances: Dict[str, Decimal],
    tolerance: Decimal = TOLERANCE,
    max_iterations: int = 1000,
) -> List[Dict]:
    """
    Minimize the number of transfers needed to settle all balances.

    Edge Cases Handled:
    - If there is at most one user: returns []
    - If all balances are zero (within tolerance): returns []
    - If sum of balances != 0 (beyond tolerance): raises ValueError
    - If max_iterations exceeded: raises RuntimeError (prevents infinite loops)

    Args:
        balances: Dictionary mapping user_id -> net_balance
        tolerance: Amounts at or below this are treated as settled (default: 0.01)
        max_iterations: Upper bound on loop iterations (default: 1000)

    Returns:
        List of settlement transfers, each with format:
        [{"from": str, "to": str, "amount": Decimal}, ...]

    Raises:
        ValueError: If balances don't sum to zero (beyond tolerance)
        RuntimeError: If max_iterations exceeded
    """
    settlements, _ = _run(balances, tolerance, max_iterations, logs=None)
    return settlements


def min_cash_flow_detailed(
    balances: Dict[str, Decimal],
    tolerance: Decimal = TOLERANCE,
    max_iterations: int = 1000,
) -> Tuple[List[Dict], List[str]]:
    """
    Same algorithm as min_cash_flow(), but also returns a step-by-step log of
    the matching process. Useful for debugging and for explaining suggestions.

    Returns:
        Tuple of (settlements_list, detailed_logs_list)
    """
    logs: List[str] = ["Min-Cash-Flow: greedy max-pair matching", f"Initial balances: {balances}"]
    settlements, iterations = _run(balances, tolerance, max_iterations, logs=logs)
    logs.append(f"Algorithm completed in {iterations} iterations")
    logs.append(f"Total settlements: {len(settlements)}")
    return settlements, logs


def _run(
    balances: Dict[str, Decimal],
    tolerance: Decimal,
    max_iterations: int,
    logs: Optional[List[str]],
) -> Tuple[List[Dict], int]:
    if len(balances) <= 1:
        if logs is not None:
            logs.append("At most one user. No settlements needed.")
        return [], 0

    validate_balance_sum(balances, tolerance)

    working = sorted(
        ((user_id, Decimal(balance)) for user_id, balance in balances.items()),
        key=lambda item: item[0],
    )

    settlements: List[Dict] = []
    iterations = 0

    while True:
        creditor, debtor = _extremes(working)
        max_credit = working[creditor][1] if creditor is not None else Decimal("0")
        max_debt = working[debtor][1] if debtor is not None else Decimal("0")

        if max_credit <= tolerance and max_debt >= -tolerance:
            break

        iterations += 1
        if iterations > max_iterations:
            raise RuntimeError(
                f"Settlement loop exceeded max_iterations ({max_iterations}). "
                f"This may indicate malformed input or rounding issues."
            )

        # One side alone may be outside tolerance when balances carry drift
        if creditor is None or debtor is None:
            break

        # Transfers below the tolerance still run while the other side is outside it
        amount = min(max_credit, -max_debt)

        debtor_id, creditor_id = working[debtor][0], working[creditor][0]
        working[debtor] = (debtor_id, max_debt + amount)
        working[creditor] = (creditor_id, max_credit - amount)

        if round_decimal(amount) == 0:
            continue
        settlements.append({
            "from": debtor_id,
            "to": creditor_id,
            "amount": round_decimal(amount),
        })

        if logs is not None:
            logs.append(f"Step {iterations}: {debtor_id} pays {creditor_id} {round_decimal(amount)}")

    logger.debug(f"min_cash_flow produced {len(settlements)} settlements in {iterations} iterations")
    return settlements, iterations
