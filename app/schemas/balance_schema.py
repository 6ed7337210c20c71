from pydantic import BaseModel, ConfigDict
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from app.models.transactions import TransactionType


class GroupBalanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    group_id: str
    user_id: str
    user_name: Optional[str] = None
    balance: Decimal
    total_paid: Decimal
    total_owed: Decimal
    currency: str
    last_transaction_id: Optional[str] = None
    last_updated: datetime
    version: int


class SettlementSuggestion(BaseModel):
    group_id: str
    payer_id: str
    payer_name: Optional[str] = None
    payee_id: str
    payee_name: Optional[str] = None
    amount: Decimal
    currency: str
    status: str = "pending"


class BalanceDrift(BaseModel):
    user_id: str
    ledger_balance: Decimal
    replayed_balance: Decimal
    difference: Decimal


class BalanceAudit(BaseModel):
    """Comparison of the incremental ledger with a full replay of the group's transactions"""
    group_id: str
    transaction_count: int
    ledger_sum: Decimal
    is_consistent: bool
    drift: List[BalanceDrift] = []


class BalancesSummary(BaseModel):
    positive: int = 0  # Members who are owed money
    negative: int = 0  # Members who owe money
    zero: int = 0


class GroupAnalytics(BaseModel):
    group_id: str
    group_name: str
    currency: str
    member_count: int
    total_transactions: int
    total_expenses: int
    total_settlements: int
    total_expense_amount: Decimal
    total_settlement_amount: Decimal
    balances_summary: BalancesSummary


class GroupsSummary(BaseModel):
    owe_money: int = 0
    owed_money: int = 0
    balanced: int = 0


class UserAnalytics(BaseModel):
    user_id: str
    total_groups: int
    total_transactions: int
    total_expenses: int
    total_settlements: int
    net_balance: Decimal
    groups_summary: GroupsSummary


class BalanceHistoryEntry(BaseModel):
    transaction_id: str
    type: TransactionType
    description: str
    amount: Decimal
    net_amounts: dict  # user_id -> net amount in this transaction


class BalanceHistoryDay(BaseModel):
    date: str  # YYYY-MM-DD
    transactions: List[BalanceHistoryEntry] = []
