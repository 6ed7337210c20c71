from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
from app.db.database import get_db
from app.api.deps import envelope, get_current_user_id, get_transaction_engine
from app.services.group_service import (
    create_group, get_group_for_member, get_user_groups, update_group, delete_group,
    add_member_to_group, remove_member_from_group
)
from app.services.transaction_service import TransactionEngine
from app.schemas.group_schema import GroupCreate, GroupUpdate, GroupOut, GroupMemberCreate
from app.schemas.balance_schema import GroupBalanceOut
from app.schemas.transaction_schema import BulkSettlementCreate, TransactionOut

router = APIRouter(prefix="/groups", tags=["groups"])


@router.post("/", status_code=201)
def create_new_group(
    group_data: GroupCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Create a new group"""
    group = create_group(db, group_data, user_id)
    return envelope("group created successfully", GroupOut.model_validate(group))


@router.get("/")
def get_my_groups(
    page: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Get all groups for current user"""
    groups = get_user_groups(db, user_id, page, limit)
    return envelope("groups retrieved successfully", [GroupOut.model_validate(g) for g in groups])


@router.get("/{group_id}")
def get_group_details(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Get group details with members"""
    group = get_group_for_member(db, group_id, user_id)
    return envelope("group retrieved successfully", GroupOut.model_validate(group))


@router.patch("/{group_id}")
def update_existing_group(
    group_id: str,
    update_data: GroupUpdate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Update a group (creator only)"""
    group = update_group(db, group_id, update_data, user_id)
    return envelope("group updated successfully", GroupOut.model_validate(group))


@router.delete("/{group_id}")
def delete_existing_group(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Deactivate a group (creator only)"""
    delete_group(db, group_id, user_id)
    return envelope("group deleted successfully")


@router.post("/{group_id}/members")
def add_group_member(
    group_id: str,
    member_data: GroupMemberCreate,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Add a known user to the group"""
    group = add_member_to_group(db, group_id, user_id, member_data.user_id)
    return envelope("member added successfully", GroupOut.model_validate(group))


@router.delete("/{group_id}/members/{member_user_id}")
def remove_group_member(
    group_id: str,
    member_user_id: str,
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Remove a member from group (creator only)"""
    remove_member_from_group(db, group_id, user_id, member_user_id)
    return envelope("member removed successfully")


@router.get("/{group_id}/transactions")
def get_group_transactions_list(
    group_id: str,
    type: Optional[str] = Query(None, description="expense, settlement, refund or adjustment"),
    page: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Transactions of a group, newest first"""
    transactions = engine.get_group_transactions(group_id, user_id, type, page, limit)
    return envelope(
        "transactions retrieved successfully", [TransactionOut.model_validate(t) for t in transactions]
    )


@router.get("/{group_id}/balances")
def get_group_balances(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Current balance of every member of the group"""
    balances = engine.get_group_balances(group_id, user_id)
    return envelope("balances retrieved successfully", [GroupBalanceOut.model_validate(b) for b in balances])


@router.get("/{group_id}/simplify")
def get_simplified_debts(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Suggested transfers that settle all debts in the group"""
    return envelope("debts simplified successfully", engine.simplify_debts(group_id, user_id))


@router.get("/{group_id}/history")
def get_balance_history(
    group_id: str,
    days: int = Query(30, ge=1, le=365),
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Per-day transaction history of the group"""
    return envelope("balance history retrieved successfully", engine.get_group_balance_history(group_id, user_id, days))


@router.get("/{group_id}/analytics")
def get_group_analytics(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Totals and balance distribution of the group"""
    return envelope("group analytics retrieved successfully", engine.get_group_analytics(group_id, user_id))


@router.post("/{group_id}/settlements/bulk", status_code=201)
def create_bulk_settlements(
    group_id: str,
    bulk_data: BulkSettlementCreate,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Record several settlements at once; either all are recorded or none"""
    transactions = engine.create_bulk_settlements(group_id, user_id, bulk_data.settlements)
    return envelope(
        f"{len(transactions)} settlements created successfully",
        [TransactionOut.model_validate(t) for t in transactions],
    )


@router.post("/{group_id}/balances/recalculate")
def recalculate_balances(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Rebuild the group's balances from its transactions"""
    count = engine.recalculate_group_balances(group_id, user_id)
    return envelope("balances recalculated successfully", {"transactions_replayed": count})


@router.get("/{group_id}/balances/audit")
def audit_balances(
    group_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Compare stored balances with a replay of the group's transactions"""
    return envelope("balance audit completed", engine.audit_group_balances(group_id, user_id))
