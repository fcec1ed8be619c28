"""Unit tests for ConnectionService."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from integrations.aggregator_protocol import AggregatorConsent
from integrations.basiq_client import BasiqClient
from integrations.exceptions import AggregatorAPIError
from integrations.token_cache import TokenCache
from models import BankAccount, BankConnection, BankTransaction, User, utcnow
from services.connection_service import ConnectionService
from services.connection_state import ConnectionStatus
from services.exceptions import ConnectionNotFoundError, IneligibleUserError
from tests.fixtures.mocks import MockBasiqClient, make_account

NOW = datetime(2024, 6, 10, 12, 0)


@pytest.fixture
def client():
    return MockBasiqClient(
        consent_expires_at=datetime(2025, 6, 10, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def service(client):
    return ConnectionService(client)


class TestInitiateLink:
    def test_refuses_user_without_advisor(self, db, service, client, unadvised_user):
        with pytest.raises(IneligibleUserError):
            service.initiate_link(db, unadvised_user)
        assert client.calls == []
        assert db.query(BankConnection).count() == 0

    def test_first_link_creates_identity_and_placeholder(
        self, db, service, client, advised_user
    ):
        result = service.initiate_link(db, advised_user)
        db.commit()

        assert client.calls_to("create_user") == [("create_user", "client@example.com")]
        connection = db.query(BankConnection).one()
        assert result.connection_id == connection.id
        assert result.aggregator_user_id == "basiq-user-1"
        assert result.consent_url == "https://consent.basiq.io/home?token=basiq-user-1"
        assert connection.status == "pending"
        assert connection.institution_name == "Pending"
        assert connection.institution_id == ""
        assert connection.aggregator_connection_id == ""
        assert connection.consent_expires_at == datetime(2025, 6, 10, 12, 0)

    def test_consent_requested_with_purpose(self, db, service, client, advised_user):
        service.initiate_link(db, advised_user)

        (call,) = client.calls_to("create_consent")
        assert call[1] == advised_user.id
        assert call[2] == "basiq-user-1"
        assert "spending analysis" in call[3]

    def test_reinvocation_reuses_placeholder(self, db, service, client, advised_user):
        first = service.initiate_link(db, advised_user)
        db.commit()
        second = service.initiate_link(db, advised_user)
        db.commit()

        assert second.connection_id == first.connection_id
        assert len(client.calls_to("create_user")) == 1
        assert len(client.calls_to("create_consent")) == 2
        assert db.query(BankConnection).count() == 1

    def test_fallback_email(self, db, service, client):
        user = User(email=None, advisor_id="advisor-1")
        db.add(user)
        db.commit()

        service.initiate_link(db, user)

        assert client.calls_to("create_user") == [
            ("create_user", f"user_{user.id}@trendadvisory.com")
        ]

    def test_connection_without_identity_gets_new_placeholder(
        self, db, service, client, advised_user
    ):
        orphan = BankConnection(user_id=advised_user.id, aggregator_user_id=None)
        db.add(orphan)
        db.commit()

        result = service.initiate_link(db, advised_user)
        db.commit()

        assert result.connection_id != orphan.id
        assert db.query(BankConnection).count() == 2

    def test_new_consent_revives_expired_connection(
        self, db, service, client, advised_user, active_connection
    ):
        active_connection.status = ConnectionStatus.EXPIRED.value
        db.commit()

        result = service.initiate_link(db, advised_user)
        db.commit()

        assert result.connection_id == active_connection.id
        db.refresh(active_connection)
        assert active_connection.connection_status is ConnectionStatus.PENDING
        assert client.calls_to("create_user") == []

    def test_consent_failure_keeps_created_identity(self, db, client, advised_user):
        client.fail_create_consent = True
        service = ConnectionService(client)

        with pytest.raises(AggregatorAPIError):
            service.initiate_link(db, advised_user)
        db.rollback()

        connection = db.query(BankConnection).one()
        assert connection.aggregator_user_id == "basiq-user-1"

        client.fail_create_consent = False
        service.initiate_link(db, advised_user)
        assert len(client.calls_to("create_user")) == 1

    def test_missing_consent_expiry_uses_default_duration(self, db, client, advised_user):
        consent = AggregatorConsent(id="c", url="https://consent.basiq.io/x", expires_at=None)
        before = utcnow()

        with patch.object(client, "create_consent", return_value=consent):
            result = ConnectionService(client).initiate_link(db, advised_user)

        assert result.expires_at >= before + timedelta(days=365)
        assert result.consent_url == "https://consent.basiq.io/x"


class TestCheckConsent:
    @pytest.fixture
    def pending(self, db, advised_user):
        connection = BankConnection(
            user_id=advised_user.id,
            aggregator_user_id="basiq-user-1",
            consent_expires_at=NOW + timedelta(days=365),
        )
        db.add(connection)
        db.commit()
        return connection

    def test_empty_listing_stays_pending(self, db, service, advised_user, pending):
        result = service.check_consent(db, advised_user, pending.id, now=NOW)

        assert result.status is ConnectionStatus.PENDING
        assert result.accounts == []
        assert result.last_synced_at is None

    def test_accounts_activate_connection(self, db, service, client, advised_user, pending):
        client.accounts["basiq-user-1"] = [
            make_account("acc-a", name="Everyday", institution="AU04301"),
            make_account("acc-b", name="Savings", institution="AU04301"),
        ]

        result = service.check_consent(db, advised_user, pending.id, now=NOW)

        assert result.status is ConnectionStatus.ACTIVE
        assert [a.account_name for a in result.accounts] == ["Everyday", "Savings"]
        assert result.last_synced_at == NOW

        db.refresh(pending)
        assert pending.status == "active"
        assert pending.institution_name == "AU04301"
        assert pending.institution_id == "AU04301"
        assert pending.aggregator_connection_id == "basiq-conn-1"
        assert db.query(BankAccount).count() == 2

    def test_institution_name_fallback(self, db, service, client, advised_user, pending):
        client.accounts["basiq-user-1"] = [make_account("acc-a", institution=None)]

        service.check_consent(db, advised_user, pending.id, now=NOW)

        db.refresh(pending)
        assert pending.institution_name == "Connected Bank"

    def test_active_connection_not_polled(self, db, service, client, advised_user, active_connection):
        result = service.check_consent(db, advised_user, active_connection.id, now=NOW)

        assert result.status is ConnectionStatus.ACTIVE
        assert len(result.accounts) == 2
        assert client.calls_to("get_accounts") == []

    def test_upstream_failure_fails_open(self, db, client, advised_user, pending):
        client.fail_get_accounts = True

        result = ConnectionService(client).check_consent(db, advised_user, pending.id, now=NOW)

        assert result.status is ConnectionStatus.PENDING
        db.refresh(pending)
        assert pending.status == "pending"

    def test_malformed_account_listing_fails_open(self, db, advised_user, pending):
        def handler(request):
            if request.url.path == "/token":
                return httpx.Response(200, json={"access_token": "tok", "expires_in": 3600})
            return httpx.Response(
                200, json={"data": [{"id": "acc-x", "class": "transaction"}]}
            )

        with BasiqClient(
            api_key="YXBwLWtleQ==",
            base_url="https://au-api.basiq.io",
            token_cache=TokenCache(),
            transport=httpx.MockTransport(handler),
        ) as basiq:
            result = ConnectionService(basiq).check_consent(
                db, advised_user, pending.id, now=NOW
            )

        assert result.status is ConnectionStatus.PENDING
        db.refresh(pending)
        assert pending.status == "pending"
        assert db.query(BankAccount).count() == 0

    def test_storage_failure_keeps_prior_status(self, db, service, client, advised_user, pending):
        client.accounts["basiq-user-1"] = [make_account("acc-a")]

        with patch.object(
            db, "commit", side_effect=OperationalError("COMMIT", {}, Exception("disk I/O error"))
        ):
            result = service.check_consent(db, advised_user, pending.id, now=NOW)

        assert result.status is ConnectionStatus.PENDING
        assert db.query(BankAccount).count() == 0

    def test_expired_consent_transitions_to_expired(
        self, db, service, client, advised_user, active_connection
    ):
        active_connection.consent_expires_at = NOW - timedelta(minutes=1)
        db.commit()

        result = service.check_consent(db, advised_user, active_connection.id, now=NOW)

        assert result.status is ConnectionStatus.EXPIRED
        db.refresh(active_connection)
        assert active_connection.status == "expired"

    def test_other_user_gets_not_found(self, db, service, client, other_user, pending):
        client.accounts["basiq-user-1"] = [make_account("acc-a")]

        with pytest.raises(ConnectionNotFoundError):
            service.check_consent(db, other_user, pending.id, now=NOW)

        db.refresh(pending)
        assert pending.status == "pending"
        assert client.calls_to("get_accounts") == []


class TestListAndDelete:
    def test_list_connections_newest_first(self, db, advised_user):
        old = BankConnection(user_id=advised_user.id, created_at=NOW - timedelta(days=2))
        new = BankConnection(user_id=advised_user.id, created_at=NOW)
        db.add_all([old, new])
        db.commit()

        assert [c.id for c in ConnectionService.list_connections(db, advised_user)] == [
            new.id,
            old.id,
        ]

    def test_delete_removes_remote_and_local(
        self, db, service, client, advised_user, active_connection
    ):
        account = active_connection.accounts[0]
        db.add(
            BankTransaction(
                account_id=account.id,
                aggregator_transaction_id="t1",
                amount=Decimal("1.00"),
            )
        )
        db.commit()

        service.delete_connection(db, advised_user, active_connection.id)
        db.commit()

        assert client.calls_to("delete_connection") == [
            ("delete_connection", "basiq-user-1", "basiq-conn-1")
        ]
        assert db.query(BankConnection).count() == 0
        assert db.query(BankAccount).count() == 0
        assert db.query(BankTransaction).count() == 0

    def test_remote_delete_failure_still_deletes_locally(
        self, db, client, advised_user, active_connection
    ):
        client.fail_delete = True

        ConnectionService(client).delete_connection(db, advised_user, active_connection.id)
        db.commit()

        assert db.query(BankConnection).count() == 0

    def test_delete_other_users_connection_not_found(
        self, db, service, other_user, active_connection
    ):
        with pytest.raises(ConnectionNotFoundError):
            service.delete_connection(db, other_user, active_connection.id)
        assert db.query(BankConnection).count() == 1
