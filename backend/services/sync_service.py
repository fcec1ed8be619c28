"""Sync service - pulls accounts and transactions from the aggregator and upserts them."""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from config import settings
from integrations.aggregator_protocol import (
    AggregatorAccount,
    AggregatorClient,
    AggregatorTransaction,
)
from integrations.parsing_utils import mask_account_number, to_naive_utc
from models import BankAccount, BankConnection, BankTransaction, utcnow
from services.connection_state import ConnectionStatus, advance, is_consent_expired
from services.exceptions import AccountNotFoundError, ConnectionNotActiveError
from services.queries import get_owned_connection

logger = logging.getLogger(__name__)

_MIN_DATE = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class SyncedAccount:
    """Per-account outcome of a sync."""

    account_id: str
    account_name: str
    transaction_count: int


@dataclass
class SyncResult:
    """Result of syncing one connection.

    Accounts whose sync failed are absent from ``synced_accounts`` and
    listed in ``failed_account_ids``.
    """

    last_synced_at: datetime
    synced_accounts: list[SyncedAccount] = field(default_factory=list)
    failed_account_ids: list[str] = field(default_factory=list)

    @property
    def total_transactions_synced(self) -> int:
        return sum(a.transaction_count for a in self.synced_accounts)


def _dump_raw(remote: AggregatorTransaction) -> str | None:
    if remote.raw_data is None:
        return None
    return json.dumps(remote.raw_data, default=str, sort_keys=True)


def most_recent_transaction(
    transactions: list[AggregatorTransaction],
) -> AggregatorTransaction | None:
    """Return the most recently dated transaction.

    Ties keep the earliest position in the list (the aggregator returns
    newest first). Undated transactions sort last.
    """
    if not transactions:
        return None
    return max(transactions, key=lambda t: t.transaction_date or _MIN_DATE)


class SyncService:
    """Service for syncing bank data for one connection at a time."""

    def __init__(self, client: Optional[AggregatorClient] = None):
        """Initialize with an optional aggregator client for dependency injection.

        Args:
            client: Aggregator client. If None, a BasiqClient is created on
                    first use.
        """
        self._client = client

    @property
    def client(self) -> AggregatorClient:
        if self._client is None:
            from integrations.basiq_client import BasiqClient

            self._client = BasiqClient()
        return self._client

    # ------------------------------------------------------------------
    # Upserts
    # ------------------------------------------------------------------

    def upsert_accounts(
        self,
        db: Session,
        connection: BankConnection,
        remote_accounts: list[AggregatorAccount],
        now: datetime,
    ) -> list[BankAccount]:
        """Upsert accounts keyed by aggregator account ID.

        New accounts get the full field set (account number reduced to its
        last four digits). Existing accounts only have their balance and
        ``last_updated`` refreshed.

        Returns:
            List of upserted BankAccount records (flushed, not committed)
        """
        upserted = []
        new_count = 0
        existing_count = 0
        for remote in remote_accounts:
            last_updated = to_naive_utc(remote.last_updated) or now
            existing = (
                db.query(BankAccount)
                .filter_by(aggregator_account_id=remote.id)
                .first()
            )

            if existing:
                if remote.balance is not None:
                    existing.balance = remote.balance
                existing.last_updated = last_updated
                upserted.append(existing)
                existing_count += 1
            else:
                account = BankAccount(
                    connection_id=connection.id,
                    aggregator_account_id=remote.id,
                    account_number=mask_account_number(remote.account_no),
                    account_name=remote.name,
                    account_type=remote.account_type,
                    balance=remote.balance if remote.balance is not None else Decimal("0"),
                    available_balance=remote.available_balance,
                    currency=remote.currency,
                    institution=remote.institution,
                    last_updated=last_updated,
                )
                db.add(account)
                upserted.append(account)
                new_count += 1

        db.flush()
        logger.info(
            "Connection %s: accounts upserted (%d new, %d existing)",
            connection.id, new_count, existing_count,
        )
        return upserted

    def upsert_transaction(
        self,
        db: Session,
        account: BankAccount,
        remote: AggregatorTransaction,
    ) -> bool:
        """Insert or refresh one transaction keyed by aggregator transaction ID.

        An existing row only has its balance, status and raw payload
        refreshed; notes and local categorization are left alone.

        Returns:
            True if a new row was created, False if an existing one was updated.
        """
        existing = (
            db.query(BankTransaction)
            .filter_by(aggregator_transaction_id=remote.id)
            .first()
        )
        if existing:
            existing.balance = remote.balance
            existing.status = remote.status
            existing.raw_data = _dump_raw(remote)
            return False

        db.add(
            BankTransaction(
                account_id=account.id,
                aggregator_transaction_id=remote.id,
                description=remote.description,
                amount=abs(remote.amount),
                balance=remote.balance,
                transaction_date=to_naive_utc(remote.transaction_date),
                post_date=to_naive_utc(remote.post_date),
                category=remote.category,
                sub_category=remote.sub_category,
                merchant_name=remote.merchant_name,
                direction=remote.direction,
                status=remote.status,
                raw_data=_dump_raw(remote),
            )
        )
        return True

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    def _store_account_transactions(
        self,
        db: Session,
        account: BankAccount,
        remote_transactions: list[AggregatorTransaction],
        now: datetime,
    ) -> tuple[int, int]:
        """Upsert a batch for one account, update its balance, and commit.

        Returns:
            (created_count, updated_count)
        """
        # Same ID twice in one page would otherwise insert twice (autoflush is off)
        unique = list({t.id: t for t in remote_transactions}.values())

        created = 0
        for remote in unique:
            if self.upsert_transaction(db, account, remote):
                created += 1

        latest = most_recent_transaction(remote_transactions)
        if latest is not None:
            if latest.balance is not None:
                account.balance = latest.balance
            account.last_updated = now

        db.commit()
        return created, len(unique) - created

    def sync_account(
        self,
        db: Session,
        aggregator_user_id: str,
        account: BankAccount,
        from_date: date,
        now: datetime,
    ) -> int:
        """Fetch and store one account's transactions.

        A unique-key collision means a concurrent sync inserted some of the
        same transactions first; the batch is replayed once, which turns
        those inserts into updates of the already-stored rows.

        Returns:
            Number of transactions the aggregator returned.
        """
        account_id = account.id
        remote_transactions = self.client.get_transactions(
            aggregator_user_id,
            account_id=account.aggregator_account_id,
            from_date=from_date,
            limit=settings.TRANSACTION_FETCH_LIMIT,
        )

        try:
            created, updated = self._store_account_transactions(
                db, account, remote_transactions, now
            )
        except IntegrityError:
            db.rollback()
            logger.info(
                "Account %s: concurrent insert detected, replaying batch as update",
                account_id,
            )
            created, updated = self._store_account_transactions(
                db, account, remote_transactions, now
            )

        logger.info(
            "Account %s: %d transactions (%d new, %d updated)",
            account_id, len(remote_transactions), created, updated,
        )
        return len(remote_transactions)

    def sync_connection(
        self,
        db: Session,
        user_id: str,
        connection_id: str,
        account_id: str | None = None,
        now: datetime | None = None,
    ) -> SyncResult:
        """Sync transactions for one of the user's connections.

        Each account is committed on its own: a failure on one account is
        logged and rolled back without affecting the others. The
        connection's ``last_synced_at`` is set once after the loop,
        whatever happened to individual accounts.

        Args:
            db: Database session
            user_id: The requesting user; the connection must belong to them
            connection_id: Connection to sync
            account_id: Restrict the sync to this local account ID
            now: Sync time (naive UTC); defaults to the current time

        Raises:
            ConnectionNotFoundError: Unknown connection or not owned by user_id
            AccountNotFoundError: account_id is not under the connection
            ConnectionNotActiveError: The connection is pending or expired
        """
        now = now or utcnow()
        connection = get_owned_connection(db, user_id, connection_id)

        status = connection.connection_status
        if status is not ConnectionStatus.EXPIRED and is_consent_expired(
            connection.consent_expires_at, now
        ):
            status = advance(status, 0, consent_expired=True)
            connection.status = status.value
            db.commit()
            logger.info("Connection %s: consent expired, marked %s", connection_id, status.value)

        if status is not ConnectionStatus.ACTIVE:
            raise ConnectionNotActiveError(status.value)

        accounts = list(connection.accounts)
        if account_id is not None:
            accounts = [a for a in accounts if a.id == account_id]
            if not accounts:
                raise AccountNotFoundError("Account not found")

        aggregator_user_id = connection.aggregator_user_id
        from_date = (now - timedelta(days=settings.SYNC_WINDOW_DAYS)).date()
        result = SyncResult(last_synced_at=now)

        logger.info(
            "Sync started: connection %s, %d account(s), from %s",
            connection_id, len(accounts), from_date,
        )

        for account in accounts:
            # Read before the try; the instance expires on rollback
            local_id = account.id
            account_name = account.account_name
            try:
                count = self.sync_account(db, aggregator_user_id, account, from_date, now)
            except Exception:
                db.rollback()
                logger.error(
                    "Failed to sync account %s (%s); skipping",
                    local_id, account_name, exc_info=True,
                )
                result.failed_account_ids.append(local_id)
                continue
            result.synced_accounts.append(
                SyncedAccount(
                    account_id=local_id,
                    account_name=account_name,
                    transaction_count=count,
                )
            )

        connection.last_synced_at = now
        db.commit()

        logger.info(
            "Sync completed: connection %s, %d transactions, %d account(s) failed",
            connection_id, result.total_transactions_synced, len(result.failed_account_ids),
        )
        return result
