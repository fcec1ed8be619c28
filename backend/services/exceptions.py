"""Domain errors raised by the banking services.

The API layer maps each of these to an HTTP status; services never raise
``HTTPException`` themselves.
"""


class BankingError(Exception):
    """Base class for banking service errors."""

    status_code = 500


class IneligibleUserError(BankingError):
    """The user has no assigned advisor and may not link banks."""

    status_code = 403


class ConnectionNotFoundError(BankingError):
    """Unknown connection, or one owned by a different user."""

    status_code = 404


class AccountNotFoundError(BankingError):
    """Unknown account under the requested connection."""

    status_code = 404


class ConnectionNotActiveError(BankingError):
    """The connection is not in a syncable state."""

    status_code = 400

    def __init__(self, status: str):
        self.status = status
        super().__init__(f"Connection is not active (status: {status})")


class RateLimitExceededError(BankingError):
    """Too many requests for this user and operation in the current window."""

    status_code = 429

    def __init__(self, operation: str, retry_after: int):
        self.operation = operation
        self.retry_after = retry_after
        super().__init__(f"Too many {operation} requests. Try again in {retry_after}s.")
