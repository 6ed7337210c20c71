from sqlalchemy.sql import func
from sqlalchemy import Column, String, DateTime
from app.db.database import Base


class UserProfile(Base):
    """Local copy of user display data, fed by profile events from the user service"""
    __tablename__ = "user_profiles"

    id = Column(String, primary_key=True, nullable=False)  # Same id as in the user service
    name = Column(String(100), nullable=False)
    email = Column(String, nullable=True, index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
