"""Typed exception hierarchy for aggregator errors.

Callers can tell credential problems apart from transient network
failures and from plain upstream rejections. Every HTTP-level error
carries the status code and the raw response body.
"""


class AggregatorError(Exception):
    """Base exception for all aggregator-related errors."""

    def __init__(self, message: str, aggregator_name: str = "Basiq"):
        self.aggregator_name = aggregator_name
        super().__init__(message)


class AggregatorNotConfiguredError(AggregatorError):
    """No application credential is configured for the aggregator."""

    pass


class AggregatorConnectionError(AggregatorError):
    """Network failure (timeout, refused connection) talking to the aggregator."""

    pass


class AggregatorAPIError(AggregatorError):
    """Non-2xx response from the aggregator API."""

    def __init__(
        self,
        message: str,
        status_code: int,
        body: str = "",
        aggregator_name: str = "Basiq",
    ):
        self.status_code = status_code
        self.body = body
        super().__init__(message, aggregator_name)

    @property
    def retriable(self) -> bool:
        """429 (rate limit) and 5xx errors are generally retriable."""
        return self.status_code == 429 or self.status_code >= 500


class AggregatorAuthError(AggregatorAPIError):
    """Credential rejected or token exchange failed (HTTP 401/403)."""

    pass


class AggregatorDataError(AggregatorError):
    """Malformed or unparseable response from the aggregator."""

    pass
