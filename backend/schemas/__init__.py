"""Pydantic schemas for API request/response validation."""
from .banking import (
    BankAccountResponse,
    BankConnectionResponse,
    ConnectionListResponse,
    ConsentStatusResponse,
    LinkInitiationResponse,
    SyncedAccountResponse,
    SyncRequest,
    SyncResponse,
    SyncStatusResponse,
)

__all__ = [
    "BankAccountResponse",
    "BankConnectionResponse",
    "ConnectionListResponse",
    "ConsentStatusResponse",
    "LinkInitiationResponse",
    "SyncedAccountResponse",
    "SyncRequest",
    "SyncResponse",
    "SyncStatusResponse",
]
