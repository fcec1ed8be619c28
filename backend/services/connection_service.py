"""Connection service - links users to the aggregator and tracks consent progress."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import settings
from integrations.aggregator_protocol import AggregatorAccount, AggregatorClient
from integrations.exceptions import AggregatorError
from integrations.parsing_utils import to_naive_utc
from models import BankAccount, BankConnection, User, utcnow
from services.connection_state import (
    ConnectionStatus,
    advance,
    is_consent_expired,
    on_consent_requested,
)
from services.exceptions import IneligibleUserError
from services.queries import get_latest_connection, get_owned_connection, list_user_connections
from services.sync_service import SyncService

logger = logging.getLogger(__name__)

DEFAULT_INSTITUTION_NAME = "Connected Bank"


@dataclass
class LinkInitiation:
    """What the caller needs to send the user through the consent flow."""

    consent_url: str
    aggregator_user_id: str
    connection_id: str
    expires_at: datetime | None


@dataclass
class ConsentStatus:
    """Connection state as seen after a consent check."""

    status: ConnectionStatus
    accounts: list[BankAccount]
    last_synced_at: datetime | None


class ConnectionService:
    """Service for the bank connection lifecycle."""

    def __init__(self, client: Optional[AggregatorClient] = None):
        self._client = client

    @property
    def client(self) -> AggregatorClient:
        if self._client is None:
            from integrations.basiq_client import BasiqClient

            self._client = BasiqClient()
        return self._client

    def initiate_link(self, db: Session, user: User) -> LinkInitiation:
        """Start (or restart) the bank-linking flow for a user.

        The user's most recent connection is reused while it carries an
        aggregator identity, so repeating the call before the consent is
        completed never registers a second remote user. Otherwise a new
        aggregator user and a pending placeholder connection are created.
        The placeholder is committed straight away: a consent failure after
        that point must not lose the remote identity.

        Raises:
            IneligibleUserError: The user has no assigned advisor
            AggregatorError: User or consent creation failed upstream
        """
        if not user.has_advisor:
            raise IneligibleUserError("Bank connections are only available for advisory clients")

        connection = get_latest_connection(db, user.id)
        if connection is None or not connection.aggregator_user_id:
            email = user.email or f"user_{user.id}@{settings.FALLBACK_EMAIL_DOMAIN}"
            aggregator_user_id = self.client.create_user(email)
            connection = BankConnection(
                user_id=user.id,
                aggregator_user_id=aggregator_user_id,
                aggregator_connection_id="",
                institution_id="",
                institution_name="Pending",
                status=ConnectionStatus.PENDING.value,
            )
            db.add(connection)
            db.commit()
            logger.info(
                "User %s: created placeholder connection %s (aggregator user %s)",
                user.id, connection.id, aggregator_user_id,
            )

        consent = self.client.create_consent(
            user.id, connection.aggregator_user_id, settings.CONSENT_PURPOSE
        )

        connection.consent_expires_at = to_naive_utc(consent.expires_at) or (
            utcnow() + timedelta(days=settings.CONSENT_DURATION_DAYS)
        )
        connection.status = on_consent_requested().value
        db.flush()

        logger.info(
            "User %s: consent requested for connection %s (expires %s)",
            user.id, connection.id, connection.consent_expires_at,
        )
        return LinkInitiation(
            consent_url=consent.url,
            aggregator_user_id=connection.aggregator_user_id,
            connection_id=connection.id,
            expires_at=connection.consent_expires_at,
        )

    def check_consent(
        self,
        db: Session,
        user: User,
        connection_id: str,
        now: datetime | None = None,
    ) -> ConsentStatus:
        """Report a connection's status, advancing it if the consent completed.

        A pending connection is activated the first time the aggregator lists
        at least one account for it; the accounts are stored and the
        institution fields filled in from the first one. Aggregator and
        storage failures are logged and leave the prior status in place, so
        the caller just sees no progress on this poll.

        Commits internally.

        Raises:
            ConnectionNotFoundError: Unknown connection or not owned by user
        """
        now = now or utcnow()
        connection = get_owned_connection(db, user.id, connection_id)
        current = connection.connection_status

        if current is not ConnectionStatus.EXPIRED and is_consent_expired(
            connection.consent_expires_at, now
        ):
            new_status = advance(current, 0, consent_expired=True)
            self._commit_status(db, connection, current, new_status)
        elif current is ConnectionStatus.PENDING:
            try:
                remote_accounts = self.client.get_accounts(connection.aggregator_user_id)
            except AggregatorError as exc:
                logger.warning(
                    "Connection %s: account check failed, staying %s: %s",
                    connection_id, current.value, exc,
                )
            else:
                new_status = advance(current, len(remote_accounts))
                if new_status is ConnectionStatus.ACTIVE:
                    self._activate(db, connection, remote_accounts, now)

        return ConsentStatus(
            status=connection.connection_status,
            accounts=list(connection.accounts),
            last_synced_at=connection.last_synced_at,
        )

    def _commit_status(
        self,
        db: Session,
        connection: BankConnection,
        previous: ConnectionStatus,
        new_status: ConnectionStatus,
    ) -> None:
        connection.status = new_status.value
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error(
                "Connection %s: failed to store status %s",
                connection.id, new_status.value, exc_info=True,
            )
            return
        logger.info(
            "Connection %s: %s -> %s", connection.id, previous.value, new_status.value
        )

    def _activate(
        self,
        db: Session,
        connection: BankConnection,
        remote_accounts: list[AggregatorAccount],
        now: datetime,
    ) -> None:
        """Store the first account listing and mark the connection active."""
        connection_id = connection.id
        first = remote_accounts[0]
        try:
            SyncService(self.client).upsert_accounts(db, connection, remote_accounts, now)
            connection.institution_name = first.institution or DEFAULT_INSTITUTION_NAME
            connection.institution_id = first.institution or ""
            connection.aggregator_connection_id = first.connection_id or ""
            connection.last_synced_at = now
            connection.status = ConnectionStatus.ACTIVE.value
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.error(
                "Connection %s: failed to store accounts, staying pending",
                connection_id, exc_info=True,
            )
            return
        logger.info(
            "Connection %s: activated with %d account(s) at %s",
            connection_id, len(remote_accounts), connection.institution_name,
        )

    @staticmethod
    def list_connections(db: Session, user: User) -> list[BankConnection]:
        """List the user's connections, newest first."""
        return list_user_connections(db, user.id)

    def delete_connection(self, db: Session, user: User, connection_id: str) -> None:
        """Remove a connection with its accounts and transactions.

        The remote connection is deleted first on a best-effort basis; an
        aggregator failure is logged and the local delete still proceeds.

        Raises:
            ConnectionNotFoundError: Unknown connection or not owned by user
        """
        connection = get_owned_connection(db, user.id, connection_id)

        if connection.aggregator_user_id and connection.aggregator_connection_id:
            try:
                self.client.delete_connection(
                    connection.aggregator_user_id, connection.aggregator_connection_id
                )
            except AggregatorError as exc:
                logger.warning(
                    "Connection %s: remote delete failed, removing locally anyway: %s",
                    connection_id, exc,
                )

        db.delete(connection)
        db.flush()
        logger.info("User %s: deleted connection %s", user.id, connection_id)
