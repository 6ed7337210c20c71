import uuid
from decimal import Decimal
from sqlalchemy import Column, String, DateTime, DECIMAL, Integer, UniqueConstraint
from app.db.database import Base
from app.models.transactions import utcnow


class GroupBalance(Base):
    """Running totals for one (group, user) pair"""
    __tablename__ = "group_balances"
    __table_args__ = (UniqueConstraint("group_id", "user_id", name="uq_group_balances_group_user"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), unique=True, nullable=False)
    group_id = Column(String, nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    user_name = Column(String, nullable=True)  # Denormalized for read performance, may go stale

    # positive = the group owes this user, negative = the user owes the group
    balance = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0"))
    total_paid = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0"))
    total_owed = Column(DECIMAL(14, 2), nullable=False, default=Decimal("0"))

    currency = Column(String(3), nullable=False)
    last_transaction_id = Column(String, nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    version = Column(Integer, nullable=False)

    # Every UPDATE carries "WHERE version = <loaded version>"; a concurrent writer
    # that got there first makes the flush fail with StaleDataError.
    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}

    def apply(self, amount_paid: Decimal, amount_owed: Decimal, transaction_id=None):
        self.total_paid = (self.total_paid or Decimal("0")) + amount_paid
        self.total_owed = (self.total_owed or Decimal("0")) + amount_owed
        self.balance = self.total_paid - self.total_owed
        if transaction_id is not None:
            self.last_transaction_id = transaction_id
        self.last_updated = utcnow()
        self.version = (self.version or 0) + 1
