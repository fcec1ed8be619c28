"""Ownership-scoped lookups shared by the banking services."""

from sqlalchemy.orm import Session

from models import BankConnection
from services.exceptions import ConnectionNotFoundError


def get_owned_connection(db: Session, user_id: str, connection_id: str) -> BankConnection:
    """Fetch a connection that belongs to ``user_id``.

    A connection owned by someone else is reported exactly like a missing
    one, so its existence is never disclosed.

    Raises:
        ConnectionNotFoundError: If no such connection exists for the user.
    """
    connection = (
        db.query(BankConnection)
        .filter(
            BankConnection.id == connection_id,
            BankConnection.user_id == user_id,
        )
        .first()
    )
    if connection is None:
        raise ConnectionNotFoundError("Connection not found")
    return connection


def get_latest_connection(db: Session, user_id: str) -> BankConnection | None:
    """Return the user's most recently created connection, if any."""
    return (
        db.query(BankConnection)
        .filter(BankConnection.user_id == user_id)
        .order_by(BankConnection.created_at.desc())
        .first()
    )


def list_user_connections(db: Session, user_id: str) -> list[BankConnection]:
    """Return all of the user's connections, newest first."""
    return (
        db.query(BankConnection)
        .filter(BankConnection.user_id == user_id)
        .order_by(BankConnection.created_at.desc())
        .all()
    )
