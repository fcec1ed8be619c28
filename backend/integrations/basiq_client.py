"""Basiq API client wrapper.

Basiq is a consent-based open-banking aggregator. This client owns the
application-level token exchange (client-credentials grant against
``/token``) and maps Basiq's JSON payloads onto the normalized
dataclasses in :mod:`integrations.aggregator_protocol`.

Every request carries the ``basiq-version`` header. There is no retry at
this layer: a non-2xx response raises immediately with its status code
and body so callers decide what to isolate and what to propagate.
"""

import logging
from datetime import date, datetime

import httpx

from config import settings
from integrations.aggregator_protocol import (
    AggregatorAccount,
    AggregatorConsent,
    AggregatorTransaction,
)
from integrations.exceptions import (
    AggregatorAPIError,
    AggregatorAuthError,
    AggregatorConnectionError,
    AggregatorDataError,
    AggregatorNotConfiguredError,
)
from integrations.parsing_utils import parse_decimal, parse_iso_datetime
from integrations.token_cache import TokenCache, shared_token_cache

logger = logging.getLogger(__name__)

_CONSENT_SCOPES = ["ACCOUNTS", "TRANSACTIONS"]


class BasiqClient:
    """Wrapper around the Basiq HTTP API."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        api_version: str | None = None,
        timeout: float | None = None,
        token_cache: TokenCache | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the client.

        Args:
            api_key: Base64 application key (defaults to settings).
            base_url: API root (defaults to settings).
            api_version: Value of the ``basiq-version`` header.
            timeout: Per-request timeout in seconds.
            token_cache: Token cache to use; the process-wide cache by default.
            transport: Optional httpx transport (tests use ``httpx.MockTransport``).
        """
        self._api_key = api_key if api_key is not None else settings.BASIQ_API_KEY
        self._token_cache = token_cache or shared_token_cache
        self._client = httpx.Client(
            base_url=base_url or settings.BASIQ_API_URL,
            headers={"basiq-version": api_version or settings.BASIQ_API_VERSION},
            timeout=timeout or settings.BASIQ_TIMEOUT_SECONDS,
            transport=transport,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def __enter__(self) -> "BasiqClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def aggregator_name(self) -> str:
        return "Basiq"

    def is_configured(self) -> bool:
        """Return True if an application key is present."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        *,
        authenticated: bool = True,
        headers: dict[str, str] | None = None,
        **kwargs,
    ) -> httpx.Response:
        """Send a request and translate failures into aggregator errors."""
        request_headers = dict(headers or {})
        if authenticated:
            request_headers["Authorization"] = f"Bearer {self.get_access_token()}"

        try:
            response = self._client.request(method, path, headers=request_headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise AggregatorConnectionError(
                f"Basiq request timed out: {method} {path}"
            ) from exc
        except httpx.TransportError as exc:
            raise AggregatorConnectionError(
                f"Basiq connection failed: {method} {path}: {exc.__class__.__name__}"
            ) from exc

        if response.is_success:
            return response

        status = response.status_code
        body = response.text
        if status in (401, 403):
            if status == 401 and authenticated:
                # Token no longer honoured; force a fresh exchange next time
                self._token_cache.invalidate()
            raise AggregatorAuthError(
                f"Basiq authentication failed (HTTP {status}) for {method} {path}",
                status_code=status,
                body=body,
            )
        raise AggregatorAPIError(
            f"Basiq API error (HTTP {status}) for {method} {path}",
            status_code=status,
            body=body,
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            payload = response.json()
        except ValueError as exc:
            raise AggregatorDataError(
                f"Basiq returned a non-JSON body (HTTP {response.status_code})"
            ) from exc
        if not isinstance(payload, dict):
            raise AggregatorDataError("Basiq returned an unexpected JSON shape")
        return payload

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def _fetch_token(self) -> tuple[str, int]:
        """Exchange the application key for a bearer token."""
        if not self._api_key:
            raise AggregatorNotConfiguredError(
                "Basiq API key not configured. Set BASIQ_API_KEY or run "
                "'python scripts/setup_basiq.py'."
            )

        response = self._send(
            "POST",
            "/token",
            authenticated=False,
            headers={
                "Authorization": f"Basic {self._api_key}",
                "Content-Type": "application/x-www-form-urlencoded",
            },
            data={"grant_type": "client_credentials", "scope": "SERVER_ACCESS"},
        )
        payload = self._json(response)
        token = payload.get("access_token")
        expires_in = payload.get("expires_in")
        if not token or expires_in is None:
            raise AggregatorDataError("Basiq token response missing access_token/expires_in")
        try:
            lifetime = int(expires_in)
        except (TypeError, ValueError) as exc:
            raise AggregatorDataError(f"Invalid expires_in in token response: {expires_in!r}") from exc
        return token, lifetime

    def get_access_token(self) -> str:
        """Return a bearer token, reusing the cached one until it expires."""
        return self._token_cache.get(self._fetch_token)

    # ------------------------------------------------------------------
    # Users and consents
    # ------------------------------------------------------------------

    def create_user(self, email: str) -> str:
        """Register a Basiq user and return its ID."""
        payload = self._json(self._send("POST", "/users", json={"email": email}))
        user_id = payload.get("id")
        if not user_id:
            raise AggregatorDataError("Basiq create-user response missing id")
        logger.info("Basiq: created user %s", user_id)
        return user_id

    def create_consent(
        self,
        user_id: str,
        aggregator_user_id: str,
        purpose: str,
    ) -> AggregatorConsent:
        """Request an accounts+transactions consent for a Basiq user.

        Args:
            user_id: Local user ID (logged for traceability only).
            aggregator_user_id: The Basiq user the consent belongs to.
            purpose: Primary purpose shown to the end user.

        Returns:
            The consent, including the authorization URL to present.
        """
        payload = self._json(
            self._send(
                "POST",
                f"/users/{aggregator_user_id}/consents",
                json={
                    "type": "cdr",
                    "scopes": _CONSENT_SCOPES,
                    "title": settings.CONSENT_TITLE,
                    "purposes": {"primary": purpose},
                    "duration": settings.CONSENT_DURATION_DAYS,
                },
            )
        )
        url = payload.get("url")
        if not url:
            raise AggregatorDataError("Basiq consent response missing url")
        logger.info(
            "Basiq: consent %s created for user %s (local %s)",
            payload.get("id"), aggregator_user_id, user_id,
        )
        return AggregatorConsent(
            id=payload.get("id", ""),
            url=url,
            expires_at=parse_iso_datetime(payload.get("expiresAt")),
        )

    # ------------------------------------------------------------------
    # Accounts and transactions
    # ------------------------------------------------------------------

    def get_accounts(self, aggregator_user_id: str) -> list[AggregatorAccount]:
        """List the accounts linked to a Basiq user (empty until consent completes)."""
        payload = self._json(self._send("GET", f"/users/{aggregator_user_id}/accounts"))
        accounts = [self._map_account(item) for item in payload.get("data") or []]
        logger.info("Basiq: %d accounts for user %s", len(accounts), aggregator_user_id)
        return accounts

    def get_transactions(
        self,
        aggregator_user_id: str,
        account_id: str | None = None,
        from_date: date | None = None,
        limit: int = 500,
    ) -> list[AggregatorTransaction]:
        """List transactions, optionally filtered by account and a lower-bound date.

        Args:
            aggregator_user_id: The Basiq user.
            account_id: Basiq account ID to restrict to.
            from_date: Only transactions dated on or after this day.
            limit: Maximum number of transactions returned.
        """
        params: dict[str, str | int] = {"limit": limit}
        filter_expr = build_transaction_filter(account_id, from_date)
        if filter_expr:
            params["filter"] = filter_expr

        payload = self._json(
            self._send("GET", f"/users/{aggregator_user_id}/transactions", params=params)
        )
        transactions = [self._map_transaction(item) for item in payload.get("data") or []]
        logger.info(
            "Basiq: %d transactions for user %s (account=%s, from=%s)",
            len(transactions), aggregator_user_id, account_id, from_date,
        )
        return transactions

    # ------------------------------------------------------------------
    # Remote connection lifecycle
    # ------------------------------------------------------------------

    def get_connection(self, aggregator_user_id: str, connection_id: str) -> dict:
        """Fetch a Basiq connection resource."""
        return self._json(
            self._send("GET", f"/users/{aggregator_user_id}/connections/{connection_id}")
        )

    def refresh_connection(self, aggregator_user_id: str, connection_id: str) -> dict:
        """Ask Basiq to re-fetch data from the institution; returns the job resource."""
        job = self._json(
            self._send("POST", f"/users/{aggregator_user_id}/connections/{connection_id}/refresh")
        )
        logger.info("Basiq: refresh job %s started for connection %s", job.get("id"), connection_id)
        return job

    def delete_connection(self, aggregator_user_id: str, connection_id: str) -> bool:
        """Delete a Basiq connection."""
        self._send("DELETE", f"/users/{aggregator_user_id}/connections/{connection_id}")
        logger.info("Basiq: deleted connection %s", connection_id)
        return True

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _map_account(item: dict) -> AggregatorAccount:
        item = _as_object(item, "account")
        account_id = item.get("id")
        if not account_id:
            raise AggregatorDataError("Basiq account without id")
        account_class = _as_object(item.get("class"), "account class")
        available = item.get("availableBalance", item.get("availableFunds"))
        return AggregatorAccount(
            id=account_id,
            account_no=str(item.get("accountNo") or ""),
            name=item.get("name") or "Unnamed Account",
            account_type=account_class.get("type"),
            balance=parse_decimal(item.get("balance")),
            available_balance=parse_decimal(available),
            currency=item.get("currency") or "AUD",
            institution=item.get("institution"),
            last_updated=parse_iso_datetime(item.get("lastUpdated")),
            connection_id=item.get("connection"),
        )

    @staticmethod
    def _map_transaction(item: dict) -> AggregatorTransaction:
        item = _as_object(item, "transaction")
        transaction_id = item.get("id")
        amount = parse_decimal(item.get("amount"))
        if not transaction_id or amount is None:
            raise AggregatorDataError("Basiq transaction without id or amount")

        sub_class = _as_object(item.get("subClass"), "transaction subClass")
        merchant = _as_object(item.get("merchant"), "transaction merchant")
        merchant_name = merchant.get("name")
        if not merchant_name:
            enrich = _as_object(item.get("enrich"), "transaction enrich")
            enriched = _as_object(enrich.get("merchant"), "enriched merchant")
            merchant_name = enriched.get("businessName")

        post_date = parse_iso_datetime(item.get("postDate"))
        # Pending transactions may only carry a post date
        transaction_date = parse_iso_datetime(item.get("transactionDate")) or post_date

        return AggregatorTransaction(
            id=transaction_id,
            account_id=item.get("account") or item.get("accountId") or "",
            amount=amount,
            balance=parse_decimal(item.get("balance")),
            description=item.get("description") or "",
            direction=item.get("direction"),
            transaction_date=transaction_date,
            post_date=post_date,
            status=item.get("status"),
            category=sub_class.get("title"),
            sub_category=sub_class.get("code"),
            merchant_name=merchant_name,
            raw_data=item,
        )


def _as_object(value, what: str) -> dict:
    """Return ``value`` as a JSON object; a missing value becomes ``{}``."""
    if not value:
        return {}
    if not isinstance(value, dict):
        raise AggregatorDataError(
            f"Basiq returned a malformed {what}: expected an object, got {type(value).__name__}"
        )
    return value


def build_transaction_filter(
    account_id: str | None = None, from_date: date | None = None
) -> str | None:
    """Build a Basiq ``filter`` expression for the transaction listing.

    Clauses are comma-joined, e.g.
    ``account.id.eq('abc'),transactionDate.gte('2024-01-01')``.
    """
    clauses = []
    if account_id:
        clauses.append(f"account.id.eq('{account_id}')")
    if from_date:
        day = from_date.date() if isinstance(from_date, datetime) else from_date
        clauses.append(f"transactionDate.gte('{day.isoformat()}')")
    return ",".join(clauses) or None
