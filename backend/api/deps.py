"""Shared FastAPI dependencies for the banking endpoints.

Each factory here is a seam tests replace through
``app.dependency_overrides``.
"""

import logging

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from database import get_db
from integrations.aggregator_protocol import AggregatorClient
from integrations.basiq_client import BasiqClient
from models import User
from services.connection_service import ConnectionService
from services.rate_limiter import FixedWindowRateLimiter, link_rate_limiter, sync_rate_limiter
from services.sync_service import SyncService

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the authenticated user from the ``X-User-Id`` header.

    Stand-in for the host application's session layer, which overrides
    this dependency.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    user = db.query(User).filter(User.id == x_user_id).first()
    if user is None:
        logger.info("Rejected request for unknown user %s", x_user_id)
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def _get_basiq_client():
    """Dependency for injecting the aggregator client (overridable in tests)."""
    client = BasiqClient()
    try:
        yield client
    finally:
        client.close()


def get_connection_service(
    client: AggregatorClient = Depends(_get_basiq_client),
) -> ConnectionService:
    return ConnectionService(client)


def get_sync_service(
    client: AggregatorClient = Depends(_get_basiq_client),
) -> SyncService:
    return SyncService(client)


def get_link_rate_limiter() -> FixedWindowRateLimiter:
    return link_rate_limiter


def get_sync_rate_limiter() -> FixedWindowRateLimiter:
    return sync_rate_limiter
