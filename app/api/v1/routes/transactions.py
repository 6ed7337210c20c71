from fastapi import APIRouter, Depends
from app.api.deps import envelope, get_current_user_id, get_transaction_engine
from app.services.transaction_service import TransactionEngine
from app.schemas.transaction_schema import (
    ExpenseCreate, SettlementCreate, TransactionUpdate, MarkComplete, TransactionOut
)

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.post("/expenses", status_code=201)
def create_new_expense(
    expense_data: ExpenseCreate,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Create an expense with its payers and splits"""
    transaction = engine.create_expense(
        expense_data.group_id,
        user_id,
        expense_data.description,
        expense_data.amount,
        expense_data.currency,
        expense_data.split_type,
        expense_data.payers,
        expense_data.splits,
        category=expense_data.category,
        notes=expense_data.notes,
        date=expense_data.date,
        receipt=expense_data.receipt,
    )
    return envelope("expense created successfully", TransactionOut.model_validate(transaction))


@router.post("/settlements", status_code=201)
def create_new_settlement(
    settlement_data: SettlementCreate,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Record a settlement between two group members"""
    transaction = engine.create_settlement(
        settlement_data.group_id,
        settlement_data.payer_id,
        settlement_data.payee_id,
        settlement_data.amount,
        currency=settlement_data.currency,
        notes=settlement_data.notes,
        creator_id=user_id,
        is_completed=settlement_data.is_completed,
    )
    return envelope("settlement created successfully", TransactionOut.model_validate(transaction))


@router.get("/{transaction_id}")
def get_transaction_details(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Get a transaction of one of the caller's groups"""
    transaction = engine.get_transaction(transaction_id, user_id)
    return envelope("transaction retrieved successfully", TransactionOut.model_validate(transaction))


@router.patch("/{transaction_id}")
def update_existing_transaction(
    transaction_id: str,
    update_data: TransactionUpdate,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Update description, category or notes of an expense (creator only)"""
    transaction = engine.update_transaction(transaction_id, user_id, update_data)
    return envelope("transaction updated successfully", TransactionOut.model_validate(transaction))


@router.delete("/{transaction_id}")
def delete_existing_transaction(
    transaction_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Delete a transaction and reverse its balance effect (creator only)"""
    engine.delete_transaction(transaction_id, user_id)
    return envelope("transaction deleted successfully")


@router.post("/{transaction_id}/complete")
def complete_settlement(
    transaction_id: str,
    completion: MarkComplete,
    user_id: str = Depends(get_current_user_id),
    engine: TransactionEngine = Depends(get_transaction_engine)
):
    """Mark a pending settlement as completed (participants only)"""
    transaction = engine.mark_complete(
        transaction_id,
        user_id,
        notes=completion.notes,
        method=completion.settlement_method,
        proof=completion.proof_of_payment,
    )
    return envelope("settlement marked as complete", TransactionOut.model_validate(transaction))
