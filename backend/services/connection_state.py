"""Bank connection state machine.

A connection starts ``pending`` when a consent is requested, becomes
``active`` the first time the aggregator reports at least one account,
and becomes ``expired`` once its consent validity window has passed.
Every status change goes through :func:`advance` or
:func:`on_consent_requested`; call sites never compare status strings
to decide a transition themselves.
"""

from datetime import datetime
from enum import Enum


class ConnectionStatus(str, Enum):
    """Lifecycle state of a BankConnection."""

    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"


def advance(
    current: ConnectionStatus | str,
    accounts_observed: int,
    consent_expired: bool = False,
) -> ConnectionStatus:
    """Compute the next status after observing the aggregator.

    Args:
        current: The connection's current status.
        accounts_observed: Number of accounts the aggregator listed.
        consent_expired: Whether the consent validity window has passed.

    Returns:
        The new status. ``pending`` only moves to ``active`` on a listing
        with at least one account; an empty listing leaves it unchanged.
    """
    current = ConnectionStatus(current)

    if consent_expired:
        return ConnectionStatus.EXPIRED
    if current is ConnectionStatus.PENDING and accounts_observed >= 1:
        return ConnectionStatus.ACTIVE
    return current


def on_consent_requested() -> ConnectionStatus:
    """Status after a new consent has been issued for the connection.

    A fresh consent always restarts the pending→active path, whatever the
    previous status; this is also how an expired connection is revived.
    """
    return ConnectionStatus.PENDING


def is_consent_expired(expires_at: datetime | None, now: datetime) -> bool:
    """Return True if a consent expiry is known and not in the future.

    Both datetimes must be naive UTC (the storage convention).
    """
    return expires_at is not None and expires_at <= now
