from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from app.models.transactions import TransactionType, SplitType, TransactionStatus, ParticipantRole


class PayerIn(BaseModel):
    user_id: str
    amount: Decimal = Field(..., gt=0)


class SplitIn(BaseModel):
    user_id: str
    # exact splits carry an amount, percentage splits a percentage, equal splits neither
    amount: Optional[Decimal] = Field(None, ge=0)
    percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class ExpenseCreate(BaseModel):
    group_id: str
    description: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    split_type: SplitType
    payers: List[PayerIn]
    splits: List[SplitIn]
    category: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    receipt: Optional[str] = None
    date: Optional[datetime] = None


class SettlementCreate(BaseModel):
    group_id: str
    payer_id: str
    payee_id: str
    amount: Decimal = Field(..., gt=0)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    notes: Optional[str] = None
    is_completed: bool = False


class BulkSettlementCreate(BaseModel):
    settlements: List[SettlementCreate]


class TransactionUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=200)
    amount: Optional[Decimal] = Field(None, gt=0)
    category: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    # Structural fields: present only so that attempts to change them can be rejected
    split_type: Optional[SplitType] = None
    payers: Optional[List[PayerIn]] = None
    splits: Optional[List[SplitIn]] = None


class MarkComplete(BaseModel):
    notes: Optional[str] = None
    settlement_method: Optional[str] = Field(None, max_length=50)
    proof_of_payment: Optional[str] = None


class PayerOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    user_name: Optional[str] = None
    amount: Decimal


class SplitOut(PayerOut):
    percentage: Optional[Decimal] = None


class ParticipantOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    user_name: Optional[str] = None
    net_amount: Decimal
    role: ParticipantRole


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    group_id: str
    type: TransactionType
    status: TransactionStatus
    is_completed: bool
    description: str
    amount: Decimal
    currency: str
    date: datetime
    category: Optional[str] = None
    split_type: Optional[SplitType] = None
    receipt: Optional[str] = None
    settled_at: Optional[datetime] = None
    settlement_method: Optional[str] = None
    proof_of_payment: Optional[str] = None
    notes: Optional[str] = None
    created_by: str
    updated_at: datetime
    updated_by: Optional[str] = None
    payers: List[PayerOut] = []
    splits: List[SplitOut] = []
    participants: List[ParticipantOut] = []
