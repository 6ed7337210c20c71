"""
Transaction engine: the only writer of transactions and ledger rows.

Every write runs inside one atomic unit on the engine's session: the
transaction rows and every ledger row it touches are committed together or
not at all. Writers to the same group are serialized by a per-group lock
(in-process, plus a transaction-scoped advisory lock on PostgreSQL), which is
also what keeps a recalculation from interleaving with new writes.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import get_settings
from app.core.errors import (
    AuthorizationError, ConflictError, InputError, InternalError, InvalidStateError,
    LedgerError, NotFoundError, ValidationError,
)
from app.models.transactions import (
    Transaction, TransactionParticipant, TransactionPayer, TransactionSplit,
    TransactionStatus, TransactionType, SplitType, utcnow,
)
from app.schemas.balance_schema import (
    BalanceAudit, BalanceDrift, BalanceHistoryDay, BalanceHistoryEntry, BalancesSummary,
    GroupAnalytics, GroupsSummary, SettlementSuggestion, UserAnalytics,
)
from app.schemas.transaction_schema import SettlementCreate, TransactionUpdate
from app.services.group_service import GroupInfo, SqlGroupDirectory, parse_id
from app.services.ledger_service import BalanceLedger, replay_balances, transaction_deltas
from app.services.notification_service import NotificationDispatcher, get_notification_dispatcher
from app.services.split_service import (
    Participant, Share, build_expense_shares, check_conservation, derive_participants,
    settlement_participants,
)
from app.services.user_service import SqlUserDirectory, UserInfo
from app.utils.min_cash_flow import min_cash_flow
from app.utils.money import TOLERANCE, amounts_equal, is_zero, round_decimal, to_decimal

logger = logging.getLogger(__name__)

MAX_BULK_SETTLEMENTS = 50
MAX_PAGE_SIZE = 100

# Failures worth another attempt: a lost version race on a ledger row, a
# concurrent first insert of the same (group, user) row, or a transient
# store error such as a deadlock or lock timeout.
RETRYABLE_ERRORS = (StaleDataError, IntegrityError, OperationalError)


class GroupDirectory(Protocol):
    def is_member(self, group_id: str, user_id: str) -> bool: ...

    def get_group(self, group_id: str) -> Optional[GroupInfo]: ...


class UserDirectory(Protocol):
    def get_user(self, user_id: str) -> Optional[UserInfo]: ...


@dataclass
class _Plan:
    """Everything needed to build one transaction inside the atomic unit"""
    group: GroupInfo
    type: TransactionType
    status: TransactionStatus
    description: str
    amount: Decimal
    currency: str
    created_by: str
    participants: List[Participant]
    names: Dict[str, str]
    payers: List[Share] = field(default_factory=list)
    splits: List[Share] = field(default_factory=list)
    split_type: Optional[SplitType] = None
    category: Optional[str] = None
    notes: Optional[str] = None
    receipt: Optional[str] = None
    date: Optional[datetime] = None


# Fixed pool of striped locks; groups sharing a stripe just serialize together
GROUP_LOCK_STRIPES = 64
_group_locks: List[threading.Lock] = [threading.Lock() for _ in range(GROUP_LOCK_STRIPES)]


def _lock_for_group(group_id: str) -> threading.Lock:
    return _group_locks[hash(group_id) % GROUP_LOCK_STRIPES]


@contextmanager
def _group_lock(group_id: str):
    with _lock_for_group(group_id):
        yield


class TransactionEngine:
    def __init__(
        self,
        db: Session,
        groups: GroupDirectory,
        users: UserDirectory,
        notifier: NotificationDispatcher,
        ledger: Optional[BalanceLedger] = None,
        max_retries: int = 3,
        notify_creator: bool = False,
    ):
        self.db = db
        self.groups = groups
        self.users = users
        self.notifier = notifier
        self.ledger = ledger or BalanceLedger(db)
        self.max_retries = max_retries
        self.notify_creator = notify_creator

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_expense(
        self,
        group_id: str,
        creator_id: str,
        description: str,
        amount,
        currency: Optional[str],
        split_type,
        payers: Sequence,
        splits: Sequence,
        category: Optional[str] = None,
        notes: Optional[str] = None,
        date: Optional[datetime] = None,
        receipt: Optional[str] = None,
    ) -> Transaction:
        """Record an expense and add every payer and split line to the ledger"""
        group, creator_id = self._member_group(group_id, creator_id)
        description = self._require_description(description)
        amount = self._positive_amount(amount)
        try:
            split_type = SplitType(split_type)
        except ValueError:
            raise ValidationError(f"unsupported split type: {split_type}")

        payers = [p.model_copy(update={"user_id": parse_id(p.user_id, "payer user id")}) for p in payers]
        splits = [s.model_copy(update={"user_id": parse_id(s.user_id, "split user id")}) for s in splits]
        for line in list(payers) + list(splits):
            self._require_member(group, line.user_id)

        payer_shares, split_shares = build_expense_shares(amount, split_type, payers, splits)
        participants = derive_participants(payer_shares, split_shares)
        check_conservation(participants)

        names: Dict[str, str] = {}
        for share in payer_shares:
            names.setdefault(share.user_id, self._user_name(share.user_id, "payer"))
        for share in split_shares:
            names.setdefault(share.user_id, self._user_name(share.user_id, "split"))

        plan = _Plan(
            group=group,
            type=TransactionType.expense,
            status=TransactionStatus.recorded,
            description=description,
            amount=amount,
            currency=self._currency(currency, group),
            created_by=creator_id,
            participants=participants,
            names=names,
            payers=payer_shares,
            splits=split_shares,
            split_type=split_type,
            category=category,
            notes=notes,
            receipt=receipt,
            date=date,
        )
        transaction = self._run_atomic(group.id, lambda: self._record(plan), "create expense")
        self._after_commit(transaction, group)
        return transaction

    def create_settlement(
        self,
        group_id: str,
        payer_id: str,
        payee_id: str,
        amount,
        currency: Optional[str] = None,
        notes: Optional[str] = None,
        creator_id: Optional[str] = None,
        is_completed: bool = False,
    ) -> Transaction:
        """
        Record a settlement from payer to payee.

        The ledger is updated immediately, whether or not the settlement is
        completed: the payer's total_paid and the payee's total_owed both grow
        by the amount.
        """
        group, creator_id = self._member_group(group_id, creator_id)
        plan = self._settlement_plan(group, creator_id, payer_id, payee_id, amount, currency, notes, is_completed)
        transaction = self._run_atomic(group.id, lambda: self._record(plan), "create settlement")
        self._after_commit(transaction, group)
        return transaction

    def create_bulk_settlements(
        self, group_id: str, user_id: str, requests: Sequence[SettlementCreate]
    ) -> List[Transaction]:
        """Record several settlements of one group in a single atomic unit"""
        group, user_id = self._member_group(group_id, user_id)
        if not requests:
            raise ValidationError("no settlements provided")
        if len(requests) > MAX_BULK_SETTLEMENTS:
            raise ValidationError(f"too many settlements - maximum {MAX_BULK_SETTLEMENTS} per request")

        plans = []
        for request in requests:
            if parse_id(request.group_id, "group id") != group.id:
                raise ValidationError("all settlements must be for the same group")
            plans.append(self._settlement_plan(
                group, user_id, request.payer_id, request.payee_id, request.amount,
                request.currency, request.notes, request.is_completed,
            ))

        transactions = self._run_atomic(
            group.id, lambda: [self._record(plan) for plan in plans], "create bulk settlements"
        )
        for transaction in transactions:
            self._after_commit(transaction, group)
        return transactions

    def mark_complete(
        self,
        transaction_id: str,
        user_id: str,
        notes: Optional[str] = None,
        method: Optional[str] = None,
        proof: Optional[str] = None,
    ) -> Transaction:
        """
        Mark a pending settlement as completed.

        Completion is a status change only; the ledger already reflects the
        settlement since it was recorded.
        """
        user_id = parse_id(user_id, "user id")
        key, group_id = self._transaction_key(transaction_id)

        def work():
            current = self._load_transaction(key)
            if current.type != TransactionType.settlement:
                raise InvalidStateError("only settlement transactions can be marked as complete")
            if user_id not in {p.user_id for p in current.participants}:
                raise AuthorizationError("only participants can mark settlement as complete")
            if current.is_completed:
                raise ConflictError("transaction is already completed")
            if not current.can_transition(TransactionStatus.completed):
                raise ConflictError(f"cannot complete a {current.status.value} transaction")

            now = utcnow()
            current.status = TransactionStatus.completed
            current.settled_at = now
            current.updated_at = now
            current.updated_by = user_id
            if notes:
                current.notes = notes
            if method:
                current.settlement_method = method
            if proof:
                current.proof_of_payment = proof
            return current

        completed = self._run_atomic(group_id, work, "complete settlement")
        logger.info(f"Settlement {completed.id} marked as complete by {user_id}")
        return completed

    def delete_transaction(self, transaction_id: str, user_id: str) -> None:
        """
        Delete a transaction (creator only) and reverse its ledger deltas.

        Completed settlements are immutable and cannot be deleted.
        """
        user_id = parse_id(user_id, "user id")
        key, group_id = self._transaction_key(transaction_id)
        group = self.groups.get_group(group_id)
        if group is None:
            raise NotFoundError("group not found")

        def work():
            current = self._load_transaction(key)
            if current.created_by != user_id:
                raise AuthorizationError("only the creator can delete this transaction")
            if current.type == TransactionType.settlement and current.is_completed:
                raise ConflictError("completed settlements cannot be deleted")

            reversal = transaction_deltas(current, sign=-1)
            self.db.delete(current)
            self.db.flush()
            for delta in reversal:
                self.ledger.upsert(
                    group.id, delta.user_id, delta.amount_paid, delta.amount_owed, None,
                    user_name=delta.user_name, currency=group.currency,
                )

        self._run_atomic(group.id, work, "delete transaction")
        logger.info(f"Transaction {key} deleted from group {group.id} by {user_id}")

    def update_transaction(self, transaction_id: str, user_id: str, fields: TransactionUpdate) -> Transaction:
        """
        Update the non-structural fields of an expense (creator only).

        Changing payers, splits, split type or amount would need a ledger
        rewrite and is rejected; the caller must delete and recreate instead.
        """
        user_id = parse_id(user_id, "user id")
        key, group_id = self._transaction_key(transaction_id)

        def work():
            current = self._load_transaction(key)
            if current.created_by != user_id:
                raise AuthorizationError("only the creator can update this transaction")
            if current.type != TransactionType.expense:
                raise InvalidStateError("only expense transactions can be updated")
            if current.is_completed:
                raise ConflictError("completed transactions cannot be updated")

            structural = bool(fields.payers) or bool(fields.splits) or (
                fields.split_type is not None and fields.split_type != current.split_type
            ) or (
                fields.amount is not None and round_decimal(fields.amount) != round_decimal(current.amount)
            )
            if structural:
                raise ValidationError(
                    "payer/split/amount updates are not supported - please delete and recreate the transaction"
                )

            changed = False
            if fields.description is not None:
                current.description = self._require_description(fields.description)
                changed = True
            if fields.category is not None:
                current.category = fields.category
                changed = True
            if fields.notes is not None:
                current.notes = fields.notes
                changed = True
            if not changed:
                raise ValidationError("no fields to update")

            current.updated_at = utcnow()
            current.updated_by = user_id
            return current

        updated = self._run_atomic(group_id, work, "update transaction")
        logger.info(f"Transaction {updated.id} updated by {user_id}")
        return updated

    def recalculate_group_balances(self, group_id: str, user_id: str) -> int:
        """
        Rebuild every ledger row of a group by replaying its transactions in
        chronological order. Returns the number of transactions replayed.
        """
        group, user_id = self._member_group(group_id, user_id)

        def work():
            self.ledger.delete_all_by_group(group.id)
            transactions = self._group_transactions_chronological(group.id)
            for transaction in transactions:
                self._apply(transaction, group.currency)
            return len(transactions)

        count = self._run_atomic(group.id, work, "recalculate balances")
        logger.info(f"Recalculated balances of group {group.id} from {count} transactions (requested by {user_id})")
        return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_transaction(self, transaction_id: str, user_id: str) -> Transaction:
        transaction = self._load_transaction(transaction_id)
        self._member_group(transaction.group_id, user_id)
        return transaction

    def get_group_transactions(
        self, group_id: str, user_id: str, transaction_type: Optional[str] = None, page: int = 0, limit: int = 20
    ) -> List[Transaction]:
        """Transactions of a group, newest first"""
        group, _ = self._member_group(group_id, user_id)
        query = self.db.query(Transaction).filter(Transaction.group_id == group.id)
        if transaction_type:
            query = query.filter(Transaction.type == self._transaction_type(transaction_type))
        return self._paginate(query, page, limit)

    def get_user_transactions(
        self, user_id: str, transaction_type: Optional[str] = None, page: int = 0, limit: int = 20
    ) -> List[Transaction]:
        """Transactions across all groups in which the user participates, newest first"""
        user_id = parse_id(user_id, "user id")
        query = self.db.query(Transaction).filter(
            Transaction.participants.any(TransactionParticipant.user_id == user_id)
        )
        if transaction_type:
            query = query.filter(Transaction.type == self._transaction_type(transaction_type))
        return self._paginate(query, page, limit)

    def get_group_balances(self, group_id: str, user_id: str):
        group, _ = self._member_group(group_id, user_id)
        return self.ledger.list_by_group(group.id)

    def get_user_balances(self, user_id: str):
        return self.ledger.list_by_user(parse_id(user_id, "user id"))

    def simplify_debts(self, group_id: str, user_id: str) -> List[SettlementSuggestion]:
        """Suggested transfers that would close out the group's current balances"""
        group, _ = self._member_group(group_id, user_id)
        rows = self.ledger.list_by_group(group.id)
        if not rows:
            return []

        names = {row.user_id: row.user_name for row in rows}
        try:
            transfers = min_cash_flow({row.user_id: row.balance for row in rows})
        except ValueError as e:
            logger.error(f"Ledger of group {group.id} is not zero-sum, recalculation required: {e}")
            raise InternalError("group balances are inconsistent")

        return [
            SettlementSuggestion(
                group_id=group.id,
                payer_id=transfer["from"],
                payer_name=names.get(transfer["from"]),
                payee_id=transfer["to"],
                payee_name=names.get(transfer["to"]),
                amount=transfer["amount"],
                currency=group.currency,
            )
            for transfer in transfers
        ]

    def audit_group_balances(self, group_id: str, user_id: str) -> BalanceAudit:
        """Compare the incremental ledger with a from-scratch replay, without changing anything"""
        group, _ = self._member_group(group_id, user_id)
        transactions = self._group_transactions_chronological(group.id)
        replayed = replay_balances(transactions)
        ledger = {row.user_id: row.balance for row in self.ledger.list_by_group(group.id)}

        drift = []
        for member_id in sorted(set(replayed) | set(ledger)):
            paid, owed = replayed.get(member_id, (Decimal("0"), Decimal("0")))
            expected = paid - owed
            actual = ledger.get(member_id, Decimal("0"))
            if not amounts_equal(actual, expected):
                drift.append(BalanceDrift(
                    user_id=member_id, ledger_balance=actual, replayed_balance=expected, difference=actual - expected
                ))

        ledger_sum = sum(ledger.values(), Decimal("0"))
        if drift:
            logger.warning(f"Balance drift detected in group {group.id} for {len(drift)} users")
        return BalanceAudit(
            group_id=group.id,
            transaction_count=len(transactions),
            ledger_sum=ledger_sum,
            is_consistent=not drift and is_zero(ledger_sum),
            drift=drift,
        )

    def get_group_analytics(self, group_id: str, user_id: str) -> GroupAnalytics:
        group, _ = self._member_group(group_id, user_id)
        transactions = self.db.query(Transaction).filter(Transaction.group_id == group.id).all()

        expenses = [t for t in transactions if t.type == TransactionType.expense]
        settlements = [t for t in transactions if t.type == TransactionType.settlement]

        summary = BalancesSummary()
        for row in self.ledger.list_by_group(group.id):
            if row.balance > TOLERANCE:
                summary.positive += 1
            elif row.balance < -TOLERANCE:
                summary.negative += 1
            else:
                summary.zero += 1

        return GroupAnalytics(
            group_id=group.id,
            group_name=group.name,
            currency=group.currency,
            member_count=len(group.members),
            total_transactions=len(transactions),
            total_expenses=len(expenses),
            total_settlements=len(settlements),
            total_expense_amount=sum((t.amount for t in expenses), Decimal("0")),
            total_settlement_amount=sum((t.amount for t in settlements), Decimal("0")),
            balances_summary=summary,
        )

    def get_user_analytics(self, user_id: str) -> UserAnalytics:
        user_id = parse_id(user_id, "user id")
        balances = self.ledger.list_by_user(user_id)
        transactions = self.get_user_transactions(user_id, page=0, limit=MAX_PAGE_SIZE * 10)

        summary = GroupsSummary()
        for row in balances:
            if row.balance > TOLERANCE:
                summary.owed_money += 1
            elif row.balance < -TOLERANCE:
                summary.owe_money += 1
            else:
                summary.balanced += 1

        return UserAnalytics(
            user_id=user_id,
            total_groups=len(balances),
            total_transactions=len(transactions),
            total_expenses=sum(1 for t in transactions if t.type == TransactionType.expense),
            total_settlements=sum(1 for t in transactions if t.type == TransactionType.settlement),
            net_balance=sum((row.balance for row in balances), Decimal("0")),
            groups_summary=summary,
        )

    def get_group_balance_history(self, group_id: str, user_id: str, days: int = 30) -> List[BalanceHistoryDay]:
        """Transactions of the last N days grouped by calendar day, oldest first"""
        group, _ = self._member_group(group_id, user_id)
        if days <= 0:
            raise InputError("days must be positive")
        start = datetime.now(timezone.utc) - timedelta(days=days)

        transactions = self.db.query(Transaction)\
            .filter(Transaction.group_id == group.id, Transaction.date >= start)\
            .order_by(Transaction.date, Transaction.created_at, Transaction.id).all()

        history: Dict[str, BalanceHistoryDay] = {}
        for transaction in transactions:
            day = transaction.date.strftime("%Y-%m-%d")
            history.setdefault(day, BalanceHistoryDay(date=day)).transactions.append(BalanceHistoryEntry(
                transaction_id=transaction.id,
                type=transaction.type,
                description=transaction.description,
                amount=transaction.amount,
                net_amounts={p.user_id: p.net_amount for p in transaction.participants},
            ))
        return list(history.values())

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _run_atomic(self, group_id: str, work: Callable[[], Any], action: str):
        """
        Run work() and commit, as one unit. Retryable store failures roll back
        and rerun the whole unit up to max_retries times.
        """
        attempts = self.max_retries + 1
        for attempt in range(1, attempts + 1):
            with _group_lock(group_id):
                try:
                    self._advisory_lock(group_id)
                    result = work()
                    self.db.commit()
                    return result
                except LedgerError:
                    self.db.rollback()
                    raise
                except RETRYABLE_ERRORS as e:
                    self.db.rollback()
                    if attempt < attempts:
                        logger.warning(f"Retrying {action} for group {group_id} (attempt {attempt}/{attempts}): {e}")
                        continue
                    logger.exception(f"Giving up on {action} for group {group_id} after {attempts} attempts")
                    raise InternalError("the ledger is busy, please retry", retryable=True)
                except SQLAlchemyError:
                    self.db.rollback()
                    logger.exception(f"Storage failure during {action} for group {group_id}")
                    raise InternalError()

    def _advisory_lock(self, group_id: str) -> None:
        if self.db.get_bind().dialect.name == "postgresql":
            self.db.execute(text("SELECT pg_advisory_xact_lock(hashtext(:group_id))"), {"group_id": group_id})

    def _record(self, plan: _Plan) -> Transaction:
        now = utcnow()
        transaction = Transaction(
            group_id=plan.group.id,
            type=plan.type,
            status=plan.status,
            description=plan.description,
            amount=plan.amount,
            currency=plan.currency,
            date=plan.date or now,
            category=plan.category,
            split_type=plan.split_type,
            receipt=plan.receipt,
            notes=plan.notes,
            created_by=plan.created_by,
            updated_at=now,
            settled_at=now if plan.status == TransactionStatus.completed else None,
        )
        for position, share in enumerate(plan.payers):
            transaction.payers.append(TransactionPayer(
                user_id=share.user_id, user_name=plan.names.get(share.user_id), amount=share.amount, position=position
            ))
        for position, share in enumerate(plan.splits):
            transaction.splits.append(TransactionSplit(
                user_id=share.user_id, user_name=plan.names.get(share.user_id), amount=share.amount,
                percentage=share.percentage, position=position,
            ))
        for position, participant in enumerate(plan.participants):
            transaction.participants.append(TransactionParticipant(
                user_id=participant.user_id, user_name=plan.names.get(participant.user_id),
                net_amount=participant.net_amount, role=participant.role, position=position,
            ))

        self.db.add(transaction)
        self.db.flush()
        self._apply(transaction, plan.group.currency)
        return transaction

    def _apply(self, transaction: Transaction, currency: str) -> None:
        for delta in transaction_deltas(transaction):
            self.ledger.upsert(
                transaction.group_id, delta.user_id, delta.amount_paid, delta.amount_owed, transaction.id,
                user_name=delta.user_name, currency=currency,
            )

    def _settlement_plan(
        self, group: GroupInfo, creator_id: str, payer_id, payee_id, amount, currency, notes, is_completed
    ) -> _Plan:
        payer_id = parse_id(payer_id, "payer id")
        payee_id = parse_id(payee_id, "payee id")
        if payer_id == payee_id:
            raise ValidationError("payer and payee must be different users")
        self._require_member(group, payer_id)
        self._require_member(group, payee_id)
        amount = self._positive_amount(amount)

        participants = settlement_participants(payer_id, payee_id, amount)
        check_conservation(participants)
        return _Plan(
            group=group,
            type=TransactionType.settlement,
            status=TransactionStatus.completed if is_completed else TransactionStatus.pending,
            description="Settlement",
            amount=amount,
            currency=self._currency(currency, group),
            created_by=creator_id,
            participants=participants,
            names={
                payer_id: self._user_name(payer_id, "payer"),
                payee_id: self._user_name(payee_id, "payee"),
            },
            notes=notes,
        )

    def _after_commit(self, transaction: Transaction, group: GroupInfo) -> None:
        logger.info(
            f"Transaction {transaction.id} ({transaction.type.value}, {transaction.amount} {transaction.currency}) "
            f"recorded in group {group.id}"
        )
        self._send_notifications(transaction, group)

    def _send_notifications(self, transaction: Transaction, group: GroupInfo) -> None:
        """Best effort: a failed notification is logged and never reaches the caller"""
        if transaction.type == TransactionType.expense:
            title = "New Expense Added"
            body = f"A new expense '{transaction.description}' was added to {group.name}"
        else:
            title = "New Settlement"
            body = f"A settlement was recorded in {group.name}"
        data = {
            "type": "transaction",
            "transaction_id": transaction.id,
            "group_id": group.id,
            "amount": str(transaction.amount),
            "currency": transaction.currency,
        }

        for participant in transaction.participants:
            if participant.user_id == transaction.created_by and not self.notify_creator:
                continue
            try:
                self.notifier.notify(participant.user_id, title, body, data)
            except Exception as e:
                logger.error(f"Error sending notification to {participant.user_id} for transaction {transaction.id}: {e}")

    def _member_group(self, group_id: str, user_id: Optional[str]):
        group_id = parse_id(group_id, "group id")
        user_id = parse_id(user_id, "user id")
        group = self.groups.get_group(group_id)
        if group is None:
            raise NotFoundError("group not found")
        if user_id not in group.members:
            raise AuthorizationError("access denied")
        return group, user_id

    @staticmethod
    def _require_member(group: GroupInfo, user_id: str) -> None:
        if user_id not in group.members:
            raise ValidationError(f"user {user_id} is not a member of this group")

    def _user_name(self, user_id: str, role: str) -> str:
        user = self.users.get_user(user_id)
        if user is None:
            raise NotFoundError(f"{role} user not found")
        return user.name

    def _load_transaction(self, transaction_id: str) -> Transaction:
        transaction_id = parse_id(transaction_id, "transaction id")
        transaction = self.db.query(Transaction).filter(Transaction.id == transaction_id).first()
        if transaction is None:
            raise NotFoundError("transaction not found")
        return transaction

    def _transaction_key(self, transaction_id: str):
        """Normalized id and group id of an existing transaction"""
        transaction = self._load_transaction(transaction_id)
        return transaction.id, transaction.group_id

    def _group_transactions_chronological(self, group_id: str) -> List[Transaction]:
        return self.db.query(Transaction).filter(Transaction.group_id == group_id)\
            .order_by(Transaction.date, Transaction.created_at, Transaction.id).all()

    def _paginate(self, query, page: int, limit: int) -> List[Transaction]:
        if page < 0:
            raise InputError("page must not be negative")
        if limit < 1 or limit > MAX_PAGE_SIZE * 10:
            raise InputError("invalid page size")
        return query.order_by(Transaction.date.desc(), Transaction.id).offset(page * limit).limit(limit).all()

    @staticmethod
    def _transaction_type(value: str) -> TransactionType:
        try:
            return TransactionType(value)
        except ValueError:
            raise InputError(f"unknown transaction type: {value}")

    @staticmethod
    def _require_description(description: Optional[str]) -> str:
        if not description or not description.strip():
            raise InputError("description is required")
        return description.strip()

    @staticmethod
    def _positive_amount(amount) -> Decimal:
        if amount is None:
            raise InputError("amount is required")
        try:
            amount = round_decimal(to_decimal(amount))
        except ValueError:
            raise InputError("amount must be a number")
        if amount <= 0:
            raise ValidationError("amount must be greater than zero")
        return amount

    @staticmethod
    def _currency(currency: Optional[str], group: GroupInfo) -> str:
        if not currency:
            return group.currency
        if len(currency) != 3:
            raise ValidationError("currency must be a 3-letter code")
        return currency.upper()


def build_transaction_engine(db: Session) -> TransactionEngine:
    """Engine wired to the SQL-backed directories and the configured notifier"""
    settings = get_settings()
    return TransactionEngine(
        db,
        groups=SqlGroupDirectory(db),
        users=SqlUserDirectory(db),
        notifier=get_notification_dispatcher(),
        max_retries=settings.ledger_max_retries,
        notify_creator=settings.notify_creator,
    )
