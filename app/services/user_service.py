import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from app.core.errors import InputError
from app.models.users import UserProfile

logger = logging.getLogger(__name__)


@dataclass
class UserInfo:
    id: str
    name: str
    email: Optional[str] = None


def get_user_profile(db: Session, user_id: str) -> Optional[UserProfile]:
    """Get a cached user profile by ID"""
    return db.query(UserProfile).filter(UserProfile.id == user_id).first()


def upsert_user_profile(db: Session, user_id: str, name: str, email: Optional[str] = None) -> UserProfile:
    """Create or refresh the local copy of a user's display data"""
    profile = get_user_profile(db, user_id)
    if profile is None:
        profile = UserProfile(id=user_id, name=name, email=email)
        db.add(profile)
    else:
        profile.name = name
        profile.email = email
    db.commit()
    db.refresh(profile)
    return profile


def handle_user_profile_event(db: Session, message_data: Dict[str, Any]) -> bool:
    """
    Apply a profile event published by the user service.

    Expected payload: {"user_id": str, "name": str, "email": str | None}
    Returns False for malformed messages so the consumer can reject them.
    """
    from app.services.group_service import parse_id

    name = message_data.get("name")
    try:
        user_id = parse_id(message_data.get("user_id"), "user id")
    except InputError:
        user_id = None
    if not user_id or not name:
        logger.error(f"Malformed user profile event: {message_data}")
        return False

    upsert_user_profile(db, user_id, name, message_data.get("email"))
    logger.info(f"User profile {user_id} updated")
    return True


class SqlUserDirectory:
    """Display name lookups for the transaction engine"""

    def __init__(self, db: Session):
        self.db = db

    def get_user(self, user_id: str) -> Optional[UserInfo]:
        profile = get_user_profile(self.db, user_id)
        if profile is None:
            return None
        return UserInfo(id=profile.id, name=profile.name, email=profile.email)
