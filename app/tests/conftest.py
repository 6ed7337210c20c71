"""
Pytest configuration and fixtures for split_service tests.
"""
import pytest
from decimal import Decimal
from typing import Dict, List

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.database import Base
from app.models.groups import Group, GroupMember
from app.models.users import UserProfile
# Registers every table on Base.metadata
import app.models.balances  # noqa: F401
import app.models.transactions  # noqa: F401
from app.services.group_service import SqlGroupDirectory
from app.services.transaction_service import TransactionEngine
from app.services.user_service import SqlUserDirectory

USER_A = "11111111-1111-1111-1111-111111111111"
USER_B = "22222222-2222-2222-2222-222222222222"
USER_C = "33333333-3333-3333-3333-333333333333"
OUTSIDER = "44444444-4444-4444-4444-444444444444"


class RecordingNotifier:
    """Collects notifications instead of sending them"""

    def __init__(self):
        self.sent = []

    def notify(self, user_id, title, body, data):
        self.sent.append({"user_id": user_id, "title": title, "body": body, "data": data})


class FailingNotifier:
    def notify(self, user_id, title, body, data):
        raise ConnectionError("broker unavailable")


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def users(db_session):
    """Profiles for A, B, C and an outsider who belongs to no group"""
    for user_id, name in [(USER_A, "Alice"), (USER_B, "Bob"), (USER_C, "Carol"), (OUTSIDER, "Oscar")]:
        db_session.add(UserProfile(id=user_id, name=name, email=f"{name.lower()}@example.com"))
    db_session.commit()
    return {"A": USER_A, "B": USER_B, "C": USER_C, "outsider": OUTSIDER}


@pytest.fixture
def group(db_session, users):
    """Active USD group with members A, B, C; A is the creator"""
    group = Group(name="Trip", currency="USD", created_by=USER_A, is_active=True)
    for position, user_id in enumerate([USER_A, USER_B, USER_C]):
        group.members.append(GroupMember(user_id=user_id, position=position))
    db_session.add(group)
    db_session.commit()
    return group


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def engine(db_session, notifier):
    return TransactionEngine(
        db_session,
        groups=SqlGroupDirectory(db_session),
        users=SqlUserDirectory(db_session),
        notifier=notifier,
    )


def balance_map(rows) -> Dict[str, Decimal]:
    return {row.user_id: row.balance for row in rows}


def verify_settlements_settle_debts(balances: Dict[str, Decimal], settlements: List[Dict]) -> None:
    """
    Helper to verify settlements settle all debts.

    A transfer from debtor to creditor raises the debtor's balance and lowers
    the creditor's; after applying every transfer all balances must be zero
    within one cent.
    """
    final = dict(balances)
    for settlement in settlements:
        final[settlement["from"]] += settlement["amount"]
        final[settlement["to"]] -= settlement["amount"]

    for user, balance in final.items():
        assert abs(balance) <= Decimal("0.01"), \
            f"User {user} not settled: initial={balances[user]}, final={balance}"
