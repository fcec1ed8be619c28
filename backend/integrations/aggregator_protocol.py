"""Normalized aggregator payloads and the client protocol.

The Basiq client maps its JSON responses to these dataclasses so that
services never touch raw aggregator field names (``accountNo``,
``subClass`` and friends).
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Protocol


@dataclass
class AggregatorConsent:
    """A consent grant awaiting completion by the end user."""

    id: str
    url: str  # Authorization URL presented to the end user out-of-band
    expires_at: datetime | None = None


@dataclass
class AggregatorAccount:
    """Normalized bank account data from the aggregator."""

    id: str  # Aggregator account ID (globally unique)
    account_no: str  # Full account number; callers persist the last 4 only
    name: str
    account_type: str | None
    balance: Decimal | None
    available_balance: Decimal | None
    currency: str
    institution: str | None
    last_updated: datetime | None = None
    connection_id: str | None = None  # Aggregator connection the account came through


@dataclass
class AggregatorTransaction:
    """Normalized transaction data from the aggregator.

    ``amount`` keeps the sign the aggregator reported; storage decides how
    to represent it.
    """

    id: str  # Aggregator transaction ID (globally unique)
    account_id: str
    amount: Decimal
    balance: Decimal | None
    description: str
    direction: str | None  # "credit" | "debit"
    transaction_date: datetime | None
    post_date: datetime | None = None
    status: str | None = None
    category: str | None = None  # subClass.title
    sub_category: str | None = None  # subClass.code
    merchant_name: str | None = None
    raw_data: dict | None = None


class AggregatorClient(Protocol):
    """Operations the connection and sync services need from an aggregator."""

    def is_configured(self) -> bool:
        ...

    def create_user(self, email: str) -> str:
        ...

    def create_consent(
        self, user_id: str, aggregator_user_id: str, purpose: str
    ) -> AggregatorConsent:
        ...

    def get_accounts(self, aggregator_user_id: str) -> list[AggregatorAccount]:
        ...

    def get_transactions(
        self,
        aggregator_user_id: str,
        account_id: str | None = None,
        from_date: date | None = None,
        limit: int = 500,
    ) -> list[AggregatorTransaction]:
        ...

    def delete_connection(self, aggregator_user_id: str, connection_id: str) -> bool:
        ...
