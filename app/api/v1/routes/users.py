from fastapi import APIRouter, Depends, Query
from typing import Optional
from app.api.deps import envelope, get_current_user_id, get_transaction_engine
from app.services.transaction_service import TransactionEngine
from app.schemas.balance_schema import GroupBalanceOut
from app.schemas.transaction_schema import TransactionOut

router = APIRouter(prefix="/users/me", tags=["users"])


@router.get("/transactions")
def get_my_transactions(
    type: Optional[str] = Query(None, description="expense, settlement, refund or adjustment"),
    page: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Transactions the caller participates in, across all groups"""
    transactions = engine.get_user_transactions(user_id, type, page, limit)
    return envelope(
        "transactions retrieved successfully", [TransactionOut.model_validate(t) for t in transactions]
    )


@router.get("/balances")
def get_my_balances(
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """The caller's balance in every group"""
    balances = engine.get_user_balances(user_id)
    return envelope("balances retrieved successfully", [GroupBalanceOut.model_validate(b) for b in balances])


@router.get("/analytics")
def get_my_analytics(
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Summary of the caller's groups and transactions"""
    return envelope("user analytics retrieved successfully", engine.get_user_analytics(user_id))
