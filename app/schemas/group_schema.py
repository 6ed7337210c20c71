from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import datetime


class GroupBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    currency: str = Field(..., min_length=3, max_length=3)


class GroupCreate(GroupBase):
    member_ids: List[str] = []


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class GroupMemberCreate(BaseModel):
    user_id: str


class GroupOut(GroupBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_by: str
    is_active: bool
    member_ids: List[str] = []
    created_at: datetime
