"""Process-wide bearer token cache with single-flight refresh."""

import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable

logger = logging.getLogger(__name__)

# A fetcher performs the token exchange and returns (token, lifetime_seconds).
TokenFetcher = Callable[[], tuple[str, int]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCache:
    """Cache one bearer token until its server-declared expiry.

    The lock is held across the refresh, so when several threads find the
    token expired at the same moment only the first performs the exchange;
    the rest wait and then reuse the fresh token.
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._lock = threading.Lock()
        # (token, expires_at); always replaced as a whole
        self._entry: tuple[str, datetime] | None = None
        self.refresh_count = 0

    def _valid_token(self) -> str | None:
        entry = self._entry
        if entry is not None and entry[1] > self._clock():
            return entry[0]
        return None

    @property
    def expires_at(self) -> datetime | None:
        entry = self._entry
        return entry[1] if entry is not None else None

    def get(self, fetch: TokenFetcher) -> str:
        """Return the cached token, calling ``fetch`` only when it has expired."""
        token = self._valid_token()
        if token is not None:
            return token

        with self._lock:
            # Another thread may have refreshed while we waited for the lock
            token = self._valid_token()
            if token is not None:
                return token

            issued_at = self._clock()
            token, lifetime = fetch()
            expires_at = issued_at + timedelta(seconds=lifetime)
            self._entry = (token, expires_at)
            self.refresh_count += 1
            logger.info(
                "Aggregator token refreshed (valid for %ds, until %s)",
                lifetime, expires_at.isoformat(),
            )
            return token

    def invalidate(self) -> None:
        """Drop the cached token so the next ``get`` refreshes."""
        with self._lock:
            self._entry = None


# Shared by every BasiqClient in the process: one application credential,
# one token.
shared_token_cache = TokenCache()
