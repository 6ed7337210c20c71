from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.services.auth.jwt_handler import get_current_user
from app.services.transaction_service import TransactionEngine, build_transaction_engine


def get_current_user_id(access_token: str = Header(..., description="Access token (without Bearer)")):
    """Extract current user ID from JWT token"""
    if access_token.startswith("Bearer "):
        access_token = access_token.replace("Bearer ", "")
    user_id = get_current_user(access_token)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    return user_id


def get_transaction_engine(db: Session = Depends(get_db)) -> TransactionEngine:
    return build_transaction_engine(db)


def envelope(message: str, data=None) -> dict:
    """Success response body; errors use the same shape with success=False (see app.main)"""
    return {"success": True, "message": message, "data": data}
