"""Client-side supervision of the out-of-band bank consent step.

The end user completes the bank authorization in a window this process does
not control. The only way to learn that it finished is to ask the server,
so :class:`ConsentPoller` runs a single cooperative loop that races three
outcomes: the connection becomes active, the user closes the window, or a
hard deadline passes. A :class:`CancellationToken` lets the host stop the
loop early; waiting on the token is the loop's only timer.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 3.0
DEFAULT_TIMEOUT_SECONDS = 300.0

MSG_INITIALIZING = "Initializing connection..."
MSG_OPENING = "Opening bank connection..."
MSG_WAITING = "Complete the bank connection in the popup..."
MSG_POPUP_BLOCKED = "Please allow popups for this site"
MSG_SYNCING = "Connection successful! Syncing accounts..."
MSG_CANCELLED = "Connection cancelled"
MSG_TIMED_OUT = "Connection timeout. Please try again."


class PollOutcome(str, Enum):
    """Terminal outcome of one link attempt."""

    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    ABORTED = "aborted"
    FAILED = "failed"


@dataclass
class LinkResult:
    """Result of :meth:`ConsentPoller.run`."""

    outcome: PollOutcome
    message: str
    connection_id: str | None = None
    transactions_synced: int = 0
    account_ids: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome is PollOutcome.SUCCEEDED


class ConsentWindow(Protocol):
    """The externally controlled window showing the consent URL."""

    @property
    def closed(self) -> bool: ...

    def close(self) -> None: ...


class LinkFlowAPI(Protocol):
    """Server operations the poller drives (see ``BankingAPIClient``)."""

    def initiate_link(self) -> dict: ...

    def check_consent(self, connection_id: str) -> dict: ...

    def sync(self, connection_id: str, account_id: str | None = None) -> dict: ...


WindowOpener = Callable[[str], Optional[ConsentWindow]]


class CancellationToken:
    """Cooperative cancellation flag shared between the host and the poller."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)


class ConsentPoller:
    """Runs one complete link attempt: initiate, open window, poll, sync.

    There is no resumable state. Every terminal outcome ends the attempt,
    and a retry starts again from ``initiate_link``.
    """

    def __init__(
        self,
        api: LinkFlowAPI,
        open_window: WindowOpener,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_status: Callable[[str], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api = api
        self.open_window = open_window
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._on_status = on_status
        self._clock = clock

    def _status(self, message: str) -> None:
        logger.info("Link status: %s", message)
        if self._on_status is not None:
            self._on_status(message)

    def _finish(
        self, outcome: PollOutcome, message: str, connection_id: str | None = None, **kwargs
    ) -> LinkResult:
        self._status(message)
        return LinkResult(outcome=outcome, message=message, connection_id=connection_id, **kwargs)

    def run(self, token: CancellationToken | None = None) -> LinkResult:
        """Drive one link attempt to a terminal outcome."""
        token = token or CancellationToken()

        self._status(MSG_INITIALIZING)
        try:
            initiation = self.api.initiate_link()
        except Exception as exc:
            logger.warning("Link initiation failed: %s", exc)
            return self._finish(PollOutcome.FAILED, str(exc))
        connection_id = initiation["connectionId"]

        self._status(MSG_OPENING)
        window = self.open_window(initiation["consentUrl"])
        if window is None:
            return self._finish(PollOutcome.FAILED, MSG_POPUP_BLOCKED, connection_id)

        self._status(MSG_WAITING)
        deadline = self._clock() + self.timeout

        while True:
            if token.wait(self.poll_interval):
                self._close(window)
                return self._finish(PollOutcome.ABORTED, MSG_CANCELLED, connection_id)

            try:
                consent = self.api.check_consent(connection_id)
            except Exception as exc:
                # No progress on this tick; retried on the next one.
                logger.warning("Consent check for %s failed: %s", connection_id, exc)
            else:
                accounts = consent.get("accounts") or []
                if consent.get("status") == "active" and accounts:
                    self._close(window)
                    return self._sync(connection_id)

            if window.closed:
                return self._finish(PollOutcome.CANCELLED, MSG_CANCELLED, connection_id)

            if self._clock() >= deadline:
                self._close(window)
                return self._finish(PollOutcome.TIMED_OUT, MSG_TIMED_OUT, connection_id)

    def _sync(self, connection_id: str) -> LinkResult:
        self._status(MSG_SYNCING)
        try:
            result = self.api.sync(connection_id)
        except Exception as exc:
            logger.warning("Initial sync for %s failed: %s", connection_id, exc)
            return self._finish(PollOutcome.FAILED, str(exc), connection_id)

        total = int(result.get("totalTransactionsSynced") or 0)
        account_ids = [a["accountId"] for a in result.get("syncedAccounts") or []]
        return self._finish(
            PollOutcome.SUCCEEDED,
            f"Connected! Synced {total} transactions",
            connection_id,
            transactions_synced=total,
            account_ids=account_ids,
        )

    @staticmethod
    def _close(window: ConsentWindow) -> None:
        if not window.closed:
            window.close()
