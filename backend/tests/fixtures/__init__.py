"""Test fixtures and sample data."""
import pytest
from datetime import timedelta
from decimal import Decimal

from models import BankAccount, BankConnection, User, utcnow
from services.connection_state import ConnectionStatus
from sqlalchemy.orm import Session


def create_active_connection(
    db: Session,
    user: User,
    aggregator_user_id: str = "basiq-user-1",
    account_ids: tuple[str, ...] = ("acc-1",),
) -> BankConnection:
    """Create an active connection with one BankAccount per aggregator account ID.

    Args:
        db: Database session
        user: Owner of the connection
        aggregator_user_id: Aggregator identity stored on the connection
        account_ids: Aggregator account IDs to create accounts for

    Returns:
        The committed BankConnection
    """
    connection = BankConnection(
        user_id=user.id,
        aggregator_user_id=aggregator_user_id,
        aggregator_connection_id="basiq-conn-1",
        institution_id="AU00000",
        institution_name="AU00000",
        status=ConnectionStatus.ACTIVE.value,
        consent_expires_at=utcnow() + timedelta(days=300),
    )
    db.add(connection)
    db.flush()
    for i, aggregator_account_id in enumerate(account_ids):
        db.add(
            BankAccount(
                connection_id=connection.id,
                aggregator_account_id=aggregator_account_id,
                account_number="567" + str(i),
                account_name=f"Account {i + 1}",
                account_type="transaction",
                balance=Decimal("100.00"),
                currency="AUD",
                institution="AU00000",
            )
        )
    db.commit()
    db.refresh(connection)
    return connection


@pytest.fixture
def advised_user(db: Session) -> User:
    """A user with an assigned advisor (eligible for bank linking)."""
    user = User(email="client@example.com", advisor_id="advisor-1")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def unadvised_user(db: Session) -> User:
    """A user without an advisor."""
    user = User(email="solo@example.com")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def other_user(db: Session) -> User:
    """A second advised user, for ownership checks."""
    user = User(email="other@example.com", advisor_id="advisor-2")
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def active_connection(db: Session, advised_user: User) -> BankConnection:
    """An active connection for advised_user with two accounts."""
    return create_active_connection(db, advised_user, account_ids=("acc-1", "acc-2"))


def auth_headers(user: User) -> dict[str, str]:
    """Headers authenticating as ``user``."""
    return {"X-User-Id": user.id}
