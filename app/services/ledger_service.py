"""
Balance ledger: data access for the per (group, user) running totals.

The ledger holds no business rules. It is written only by the transaction
engine, which also owns the session and therefore the atomic unit.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import and_
from sqlalchemy.orm import Session

from app.models.balances import GroupBalance
from app.models.transactions import Transaction, TransactionType


@dataclass
class BalanceDelta:
    user_id: str
    user_name: Optional[str]
    amount_paid: Decimal
    amount_owed: Decimal


class BalanceLedger:
    """Ledger rows of one session"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, group_id: str, user_id: str) -> Optional[GroupBalance]:
        return self.db.query(GroupBalance).filter(
            and_(GroupBalance.group_id == group_id, GroupBalance.user_id == user_id)
        ).first()

    def upsert(
        self,
        group_id: str,
        user_id: str,
        delta_paid: Decimal,
        delta_owed: Decimal,
        transaction_id: Optional[str],
        user_name: Optional[str] = None,
        currency: Optional[str] = None,
    ) -> GroupBalance:
        """
        Apply a delta to the (group, user) row, creating it with a zero baseline if absent.

        The row is flushed right away: the next upsert for the same user in the
        same atomic unit must find it, and the version check runs per delta.
        """
        balance = self.get(group_id, user_id)
        if balance is None:
            balance = GroupBalance(
                group_id=group_id,
                user_id=user_id,
                user_name=user_name,
                currency=currency,
                total_paid=Decimal("0"),
                total_owed=Decimal("0"),
                balance=Decimal("0"),
                version=0,
            )
            self.db.add(balance)
        elif user_name and balance.user_name != user_name:
            balance.user_name = user_name

        balance.apply(delta_paid, delta_owed, transaction_id)
        self.db.flush()
        return balance

    def list_by_group(self, group_id: str) -> List[GroupBalance]:
        return self.db.query(GroupBalance).filter(GroupBalance.group_id == group_id)\
            .order_by(GroupBalance.user_id).all()

    def list_by_user(self, user_id: str) -> List[GroupBalance]:
        return self.db.query(GroupBalance).filter(GroupBalance.user_id == user_id)\
            .order_by(GroupBalance.group_id).all()

    def delete_all_by_group(self, group_id: str) -> None:
        self.db.query(GroupBalance).filter(GroupBalance.group_id == group_id)\
            .delete(synchronize_session="fetch")


def transaction_deltas(transaction: Transaction, sign: int = 1) -> List[BalanceDelta]:
    """
    Ledger effect of a transaction, one delta per line.

    Expenses act through their payer and split lines: a payer line adds to
    total_paid, a split line adds to total_owed. Settlements (and the other
    participant-only types) act through participants: a positive net adds to
    total_paid, a negative net adds its absolute value to total_owed, so a
    received settlement lowers the payee's balance the same way an owed share
    does.

    sign=-1 yields the exact inverse, which is how deletion reverses a transaction.
    """
    factor = Decimal(sign)
    deltas: List[BalanceDelta] = []

    if transaction.type == TransactionType.expense:
        for payer in transaction.payers:
            deltas.append(BalanceDelta(payer.user_id, payer.user_name, factor * payer.amount, Decimal("0")))
        for split in transaction.splits:
            deltas.append(BalanceDelta(split.user_id, split.user_name, Decimal("0"), factor * split.amount))
        return deltas

    for participant in transaction.participants:
        if participant.net_amount > 0:
            deltas.append(BalanceDelta(
                participant.user_id, participant.user_name, factor * participant.net_amount, Decimal("0")
            ))
        else:
            deltas.append(BalanceDelta(
                participant.user_id, participant.user_name, Decimal("0"), factor * -participant.net_amount
            ))
    return deltas


def replay_balances(transactions: Iterable[Transaction]) -> Dict[str, Tuple[Decimal, Decimal]]:
    """
    Fold every transaction's deltas from scratch.

    Returns user_id -> (total_paid, total_owed). This is the reference the
    incremental ledger must always match.
    """
    totals: Dict[str, Tuple[Decimal, Decimal]] = {}
    for transaction in transactions:
        for delta in transaction_deltas(transaction):
            paid, owed = totals.get(delta.user_id, (Decimal("0"), Decimal("0")))
            totals[delta.user_id] = (paid + delta.amount_paid, owed + delta.amount_owed)
    return totals
