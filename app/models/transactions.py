import enum
import uuid
from datetime import datetime, timezone
from sqlalchemy.sql import func
from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, DECIMAL, Text, Integer, Index
from sqlalchemy.orm import relationship
from app.db.database import Base


class TransactionType(str, enum.Enum):
    expense = "expense"
    settlement = "settlement"
    refund = "refund"
    adjustment = "adjustment"


class SplitType(str, enum.Enum):
    equal = "equal"
    exact = "exact"
    percentage = "percentage"


class TransactionStatus(str, enum.Enum):
    recorded = "recorded"    # expenses, no completion step
    pending = "pending"      # settlement waiting for confirmation
    completed = "completed"  # settlement confirmed, immutable


class ParticipantRole(str, enum.Enum):
    payer = "payer"
    split = "split"
    both = "both"
    payee = "payee"


# Allowed status transitions; anything else is a conflict
STATUS_TRANSITIONS = {
    TransactionStatus.recorded: set(),
    TransactionStatus.pending: {TransactionStatus.completed},
    TransactionStatus.completed: set(),
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_group_date", "group_id", "date"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    group_id = Column(String, ForeignKey("groups.id"), nullable=False)
    type = Column(Enum(TransactionType), nullable=False, index=True)
    status = Column(Enum(TransactionStatus), nullable=False)
    description = Column(String(200), nullable=False)
    amount = Column(DECIMAL(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)  # Copied from the request or the group at creation
    date = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Expense-specific fields
    category = Column(String(100), nullable=True)
    split_type = Column(Enum(SplitType), nullable=True)
    receipt = Column(String, nullable=True)

    # Settlement-specific fields
    settled_at = Column(DateTime(timezone=True), nullable=True)
    settlement_method = Column(String(50), nullable=True)
    proof_of_payment = Column(String, nullable=True)

    notes = Column(Text, nullable=True)
    created_by = Column(String, nullable=False, index=True)  # Reference to user service
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_by = Column(String, nullable=True)

    payers = relationship(
        "TransactionPayer", order_by="TransactionPayer.position", cascade="all, delete-orphan"
    )
    splits = relationship(
        "TransactionSplit", order_by="TransactionSplit.position", cascade="all, delete-orphan"
    )
    participants = relationship(
        "TransactionParticipant", order_by="TransactionParticipant.position", cascade="all, delete-orphan"
    )

    @property
    def is_completed(self) -> bool:
        return self.status == TransactionStatus.completed

    def can_transition(self, target: TransactionStatus) -> bool:
        return target in STATUS_TRANSITIONS.get(self.status, set())


class TransactionPayer(Base):
    """Who actually paid money toward an expense"""
    __tablename__ = "transaction_payers"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    transaction_id = Column(String, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    user_name = Column(String, nullable=True)  # Denormalized at write time
    amount = Column(DECIMAL(12, 2), nullable=False)
    position = Column(Integer, nullable=False, default=0)


class TransactionSplit(Base):
    """How an expense is divided: what each user owes"""
    __tablename__ = "transaction_splits"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    transaction_id = Column(String, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    user_name = Column(String, nullable=True)
    amount = Column(DECIMAL(12, 2), nullable=False)
    percentage = Column(DECIMAL(7, 4), nullable=True)  # Only for percentage splits
    position = Column(Integer, nullable=False, default=0)


class TransactionParticipant(Base):
    """Net involvement of a user: amount paid minus amount owed"""
    __tablename__ = "transaction_participants"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    transaction_id = Column(String, ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    user_name = Column(String, nullable=True)
    net_amount = Column(DECIMAL(12, 2), nullable=False)
    role = Column(Enum(ParticipantRole), nullable=False)
    position = Column(Integer, nullable=False, default=0)
