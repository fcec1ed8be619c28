"""Pydantic schemas for the banking endpoints.

Bodies are camelCase on the wire; fields stay snake_case in Python.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema serialized with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class LinkInitiationResponse(CamelModel):
    """Response for starting the bank-linking flow."""

    consent_url: str
    user_id: str  # Aggregator identity, not the local user
    connection_id: str
    expires_at: Optional[datetime] = None


class BankAccountResponse(CamelModel):
    """A linked bank account."""

    id: str
    account_name: str
    account_number: str
    account_type: Optional[str] = None
    balance: Decimal
    available_balance: Optional[Decimal] = None
    currency: str
    institution: Optional[str] = None
    last_updated: Optional[datetime] = None


class ConsentStatusResponse(CamelModel):
    """Connection status after a consent check."""

    status: str
    accounts: list[BankAccountResponse]
    last_synced_at: Optional[datetime] = None


class BankConnectionResponse(CamelModel):
    """A connection with its accounts."""

    id: str
    institution_name: str
    status: str
    consent_expires_at: Optional[datetime] = None
    last_synced_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    account_count: int = 0
    accounts: list[BankAccountResponse] = []


class ConnectionListResponse(CamelModel):
    has_connections: bool
    connections: list[BankConnectionResponse]


class SyncStatusResponse(CamelModel):
    connections: list[BankConnectionResponse]


class SyncRequest(CamelModel):
    """Request body for syncing a connection."""

    connection_id: str
    account_id: Optional[str] = None


class SyncedAccountResponse(CamelModel):
    account_id: str
    account_name: str
    transaction_count: int


class SyncResponse(CamelModel):
    """Per-account sync outcome.

    Accounts that failed are listed in ``failed_account_ids`` and absent
    from ``synced_accounts``.
    """

    success: bool = True
    total_transactions_synced: int
    synced_accounts: list[SyncedAccountResponse]
    failed_account_ids: list[str] = []
    last_synced_at: datetime
