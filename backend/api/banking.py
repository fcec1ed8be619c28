"""Banking API endpoints.

Server side of the bank-linking flow: initiating a consent, checking
whether it completed, syncing transactions, and managing connections.
Every endpoint acts on behalf of the authenticated user and only ever
sees that user's connections.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from api.deps import (
    get_connection_service,
    get_current_user,
    get_link_rate_limiter,
    get_sync_rate_limiter,
    get_sync_service,
)
from database import get_db
from integrations.exceptions import AggregatorError, AggregatorNotConfiguredError
from models import User
from schemas import (
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
from services.connection_service import ConnectionService
from services.exceptions import BankingError, RateLimitExceededError
from services.rate_limiter import FixedWindowRateLimiter
from services.sync_service import SyncService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/banking", tags=["banking"])


def _to_http(error: BankingError) -> HTTPException:
    """Map a domain error to the HTTP error returned to the caller."""
    headers = None
    if isinstance(error, RateLimitExceededError):
        headers = {"Retry-After": str(error.retry_after)}
    return HTTPException(status_code=error.status_code, detail=str(error), headers=headers)


# ------------------------------------------------------------------
# Link initiation
# ------------------------------------------------------------------


@router.post("/auth", response_model=LinkInitiationResponse)
def initiate_link(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
    limiter: FixedWindowRateLimiter = Depends(get_link_rate_limiter),
):
    """Start the bank-linking flow and return the consent URL.

    Raises:
        HTTPException:
            - 400 Bad Request: Aggregator credentials are not configured
            - 403 Forbidden: User has no assigned advisor
            - 429 Too Many Requests: Link rate limit exceeded
            - 502 Bad Gateway: Aggregator rejected or failed the request
    """
    try:
        limiter.enforce(user.id, "link")
        initiation = service.initiate_link(db, user)
        db.commit()
    except BankingError as e:
        raise _to_http(e)
    except AggregatorNotConfiguredError as e:
        logger.warning("Link initiation for user %s: %s", user.id, e)
        raise HTTPException(status_code=400, detail="Bank linking is not configured")
    except AggregatorError as e:
        db.rollback()
        logger.warning("Aggregator error during link initiation for user %s: %s", user.id, e)
        raise HTTPException(
            status_code=502,
            detail="The banking provider could not start the connection. Please try again.",
        )
    except Exception:
        db.rollback()
        logger.error("Unexpected error during link initiation", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to create consent")

    return LinkInitiationResponse(
        consent_url=initiation.consent_url,
        user_id=initiation.aggregator_user_id,
        connection_id=initiation.connection_id,
        expires_at=initiation.expires_at,
    )


@router.get("/auth", response_model=ConnectionListResponse)
def list_connections(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """List the user's bank connections, newest first."""
    connections = ConnectionService.list_connections(db, user)
    return ConnectionListResponse(
        has_connections=bool(connections),
        connections=[BankConnectionResponse.model_validate(c) for c in connections],
    )


# ------------------------------------------------------------------
# Consent status
# ------------------------------------------------------------------


@router.get("/consent", response_model=ConsentStatusResponse)
def check_consent(
    connection_id: Optional[str] = Query(default=None, alias="connectionId"),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    """Report a connection's status, activating it once accounts appear.

    Aggregator failures are not errors here: the connection keeps its prior
    status and the caller simply sees no progress on this poll.

    Raises:
        HTTPException:
            - 400 Bad Request: connectionId missing
            - 404 Not Found: Unknown connection or owned by another user
    """
    if not connection_id:
        raise HTTPException(status_code=400, detail="Connection ID required")

    try:
        result = service.check_consent(db, user, connection_id)
    except BankingError as e:
        raise _to_http(e)

    return ConsentStatusResponse(
        status=result.status.value,
        accounts=[BankAccountResponse.model_validate(a) for a in result.accounts],
        last_synced_at=result.last_synced_at,
    )


# ------------------------------------------------------------------
# Sync
# ------------------------------------------------------------------


@router.post("/sync", response_model=SyncResponse)
def sync_connection(
    request: SyncRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: SyncService = Depends(get_sync_service),
    limiter: FixedWindowRateLimiter = Depends(get_sync_rate_limiter),
):
    """Sync transactions for a connection, or for one of its accounts.

    Per-account failures do not fail the request; they are reported in
    ``failedAccountIds``.

    Raises:
        HTTPException:
            - 400 Bad Request: Connection is not active
            - 404 Not Found: Unknown connection or account
            - 429 Too Many Requests: Sync rate limit exceeded
            - 500 Internal Server Error: Unexpected sync error
    """
    try:
        limiter.enforce(user.id, "sync")
        result = service.sync_connection(
            db, user.id, request.connection_id, account_id=request.account_id
        )
    except BankingError as e:
        raise _to_http(e)
    except Exception:
        db.rollback()
        logger.error("Unexpected error during sync", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to sync transactions")

    return SyncResponse(
        success=True,
        total_transactions_synced=result.total_transactions_synced,
        synced_accounts=[
            SyncedAccountResponse(
                account_id=a.account_id,
                account_name=a.account_name,
                transaction_count=a.transaction_count,
            )
            for a in result.synced_accounts
        ],
        failed_account_ids=result.failed_account_ids,
        last_synced_at=result.last_synced_at,
    )


@router.get("/sync", response_model=SyncStatusResponse)
def sync_status(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Summarize each connection's accounts and last sync time."""
    connections = ConnectionService.list_connections(db, user)
    return SyncStatusResponse(
        connections=[BankConnectionResponse.model_validate(c) for c in connections],
    )


# ------------------------------------------------------------------
# Connection management
# ------------------------------------------------------------------


@router.delete("/connections/{connection_id}")
def delete_connection(
    connection_id: str,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    service: ConnectionService = Depends(get_connection_service),
):
    """Remove a connection together with its accounts and transactions.

    Raises:
        HTTPException:
            - 404 Not Found: Unknown connection or owned by another user
    """
    try:
        service.delete_connection(db, user, connection_id)
        db.commit()
    except BankingError as e:
        raise _to_http(e)
    return {"deleted": True, "connectionId": connection_id}
