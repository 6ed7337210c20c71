import logging
import uuid
from dataclasses import dataclass, field
from sqlalchemy.orm import Session
from typing import List, Optional
from app.core.errors import AuthorizationError, ConflictError, InputError, NotFoundError, ValidationError
from app.models.groups import Group, GroupMember
from app.schemas.group_schema import GroupCreate, GroupUpdate
from app.services.user_service import get_user_profile

logger = logging.getLogger(__name__)


@dataclass
class GroupInfo:
    """Read-only view of a group handed to the transaction engine"""
    id: str
    name: str
    currency: str
    creator_id: str
    members: List[str] = field(default_factory=list)


def parse_id(value: Optional[str], what: str) -> str:
    """Normalize a UUID string id, raising InputError when malformed"""
    if not value:
        raise InputError(f"{what} is required")
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        raise InputError(f"invalid {what}")


def create_group(db: Session, group_data: GroupCreate, created_by: str) -> Group:
    """Create a group; the creator becomes its first member"""
    created_by = parse_id(created_by, "user id")
    group = Group(
        name=group_data.name,
        description=group_data.description,
        currency=group_data.currency.upper(),
        created_by=created_by,
        is_active=True,
    )
    group.members.append(GroupMember(user_id=created_by, position=0))

    for member_id in group_data.member_ids:
        try:
            member_id = parse_id(member_id, "member id")
        except InputError:
            logger.warning(f"Skipping invalid member id {member_id!r} for new group")
            continue
        # Unknown users and the creator are skipped, not rejected
        if member_id in group.member_ids or get_user_profile(db, member_id) is None:
            continue
        group.members.append(GroupMember(user_id=member_id, position=len(group.members)))

    db.add(group)
    db.commit()
    db.refresh(group)
    logger.info(f"Group {group.id} created by {created_by} with {len(group.members)} members")
    return group


def get_group(db: Session, group_id: str) -> Optional[Group]:
    """Get an active group by ID"""
    return db.query(Group).filter(Group.id == group_id, Group.is_active.is_(True)).first()


def get_group_for_member(db: Session, group_id: str, user_id: str) -> Group:
    """Active group the user belongs to"""
    group_id = parse_id(group_id, "group id")
    user_id = parse_id(user_id, "user id")
    group = get_group(db, group_id)
    if not group:
        raise NotFoundError("group not found")
    if user_id not in group.member_ids:
        raise AuthorizationError("access denied")
    return group


def get_user_groups(db: Session, user_id: str, page: int = 0, limit: int = 20) -> List[Group]:
    """Active groups of a user"""
    return db.query(Group).join(GroupMember)\
        .filter(GroupMember.user_id == user_id, Group.is_active.is_(True))\
        .order_by(Group.created_at, Group.id)\
        .offset(page * limit).limit(limit).all()


def update_group(db: Session, group_id: str, update_data: GroupUpdate, user_id: str) -> Group:
    """Update group details (creator only)"""
    user_id = parse_id(user_id, "user id")
    group = get_group_for_member(db, group_id, user_id)
    if group.created_by != user_id:
        raise AuthorizationError("only the group creator can update group details")

    for field_name, value in update_data.model_dump(exclude_unset=True, exclude_none=True).items():
        if field_name == "currency":
            value = value.upper()
        setattr(group, field_name, value)

    db.commit()
    db.refresh(group)
    return group


def delete_group(db: Session, group_id: str, user_id: str):
    """Soft delete a group (creator only); the row is kept with is_active=False"""
    user_id = parse_id(user_id, "user id")
    group = get_group_for_member(db, group_id, user_id)
    if group.created_by != user_id:
        raise AuthorizationError("only the group creator can delete the group")

    group.is_active = False
    db.commit()
    logger.info(f"Group {group.id} deactivated by {user_id}")


def add_member_to_group(db: Session, group_id: str, user_id: str, new_member_id: str) -> Group:
    """Add a member to a group (any member may add)"""
    user_id = parse_id(user_id, "user id")
    group = get_group_for_member(db, group_id, user_id)
    new_member_id = parse_id(new_member_id, "member id")

    if get_user_profile(db, new_member_id) is None:
        raise NotFoundError("user not found")
    if new_member_id in group.member_ids:
        raise ConflictError("user is already a member")

    group.members.append(GroupMember(user_id=new_member_id, position=_next_position(group)))
    db.commit()
    db.refresh(group)
    return group


def remove_member_from_group(db: Session, group_id: str, user_id: str, member_id: str) -> Group:
    """Remove a member (creator only; the creator cannot be removed)"""
    user_id = parse_id(user_id, "user id")
    group = get_group_for_member(db, group_id, user_id)
    member_id = parse_id(member_id, "member id")

    if group.created_by != user_id:
        raise AuthorizationError("only the group creator can remove members")
    if member_id == group.created_by:
        raise ValidationError("cannot remove group creator")

    member = next((m for m in group.members if m.user_id == member_id), None)
    if member is None:
        raise NotFoundError("member not found")

    group.members.remove(member)
    db.commit()
    db.refresh(group)
    return group


def is_group_member(db: Session, group_id: str, user_id: str) -> bool:
    """Check if user is member of an active group"""
    member = db.query(GroupMember).join(Group).filter(
        GroupMember.group_id == group_id,
        GroupMember.user_id == user_id,
        Group.is_active.is_(True),
    ).first()
    return member is not None


def _next_position(group: Group) -> int:
    return max((m.position for m in group.members), default=-1) + 1


class SqlGroupDirectory:
    """Group membership lookups for the transaction engine, backed by the groups table"""

    def __init__(self, db: Session):
        self.db = db

    def is_member(self, group_id: str, user_id: str) -> bool:
        return is_group_member(self.db, group_id, user_id)

    def get_group(self, group_id: str) -> Optional[GroupInfo]:
        group = get_group(self.db, group_id)
        if group is None:
            return None
        return GroupInfo(
            id=group.id,
            name=group.name,
            currency=group.currency,
            creator_id=group.created_by,
            members=group.member_ids,
        )
