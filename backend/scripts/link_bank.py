#!/usr/bin/env python
"""Link a bank account from the terminal.

Runs the full consent flow against a running server: starts the link,
opens the consent page in the browser, polls until the connection is
active, then runs the first sync. Pressing Enter stands in for closing
the consent window and cancels the attempt.

Usage:
    python -m scripts.link_bank --user-id <local user id>
    python -m scripts.link_bank --user-id <id> --base-url http://localhost:8000 --timeout 120
"""

import argparse
import sys
import threading
import webbrowser

from integrations.banking_api_client import BankingAPIClient
from logging_config import setup_logging
from services.consent_poller import CancellationToken, ConsentPoller


class TerminalConsentWindow:
    """Consent "window" backed by the system browser.

    The browser tab cannot be observed or closed from here, so the user
    signals closing it by pressing Enter.
    """

    def __init__(self, url: str):
        self.url = url
        self._closed = threading.Event()
        watcher = threading.Thread(target=self._wait_for_enter, daemon=True)
        watcher.start()

    def _wait_for_enter(self) -> None:
        try:
            sys.stdin.readline()
        except (OSError, ValueError):
            return
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        self._closed.set()


def open_in_browser(url: str) -> TerminalConsentWindow | None:
    """Open the consent URL; None means no browser could be launched."""
    print(f"\nConsent URL: {url}")
    if not webbrowser.open(url, new=2):
        return None
    print("Press Enter to cancel.\n")
    return TerminalConsentWindow(url)


def main() -> int:
    parser = argparse.ArgumentParser(description="Link a bank account via Basiq consent")
    parser.add_argument("--user-id", required=True, help="Local user ID (sent as X-User-Id)")
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--poll-interval", type=float, default=3.0)
    parser.add_argument("--timeout", type=float, default=300.0)
    args = parser.parse_args()

    setup_logging()

    token = CancellationToken()
    with BankingAPIClient(base_url=args.base_url, user_id=args.user_id) as api:
        poller = ConsentPoller(
            api,
            open_in_browser,
            poll_interval=args.poll_interval,
            timeout=args.timeout,
            on_status=print,
        )
        try:
            result = poller.run(token)
        except KeyboardInterrupt:
            token.cancel()
            print("Interrupted")
            return 130

    if result.succeeded:
        print(f"Connection {result.connection_id}: {len(result.account_ids)} account(s) synced")
        return 0
    return 1


if __name__ == "__main__":
    sys.exit(main())
