"""HTTP client for this service's own banking API.

Implements the ``LinkFlowAPI`` protocol the consent poller drives, so the
link flow can run from a terminal against a running server. Any
``httpx.Client`` can be injected, including FastAPI's ``TestClient``.
"""

import logging

import httpx

logger = logging.getLogger(__name__)

_API_PREFIX = "/api/banking"


class BankingAPIError(Exception):
    """Non-2xx response from the banking API."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"HTTP {status_code}: {detail}")


class BankingAPIClient:
    """Thin wrapper over the ``/api/banking`` endpoints for one user."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        user_id: str | None = None,
        client: httpx.Client | None = None,
        timeout: float = 60.0,
    ):
        headers = {"X-User-Id": user_id} if user_id else {}
        if client is None:
            client = httpx.Client(base_url=base_url, timeout=timeout)
            self._owns_client = True
        else:
            self._owns_client = False
        client.headers.update(headers)
        self._client = client

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "BankingAPIClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> dict:
        response = self._client.request(method, f"{_API_PREFIX}{path}", **kwargs)
        if response.is_success:
            return response.json()

        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text
        logger.debug("%s %s -> HTTP %d: %s", method, path, response.status_code, detail)
        raise BankingAPIError(response.status_code, str(detail))

    def initiate_link(self) -> dict:
        return self._request("POST", "/auth")

    def list_connections(self) -> dict:
        return self._request("GET", "/auth")

    def check_consent(self, connection_id: str) -> dict:
        return self._request("GET", "/consent", params={"connectionId": connection_id})

    def sync(self, connection_id: str, account_id: str | None = None) -> dict:
        body = {"connectionId": connection_id}
        if account_id is not None:
            body["accountId"] = account_id
        return self._request("POST", "/sync", json=body)

    def sync_status(self) -> dict:
        return self._request("GET", "/sync")

    def delete_connection(self, connection_id: str) -> dict:
        return self._request("DELETE", f"/connections/{connection_id}")
