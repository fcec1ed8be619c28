#!/usr/bin/env python3
"""Basiq setup script.

This script checks a Basiq application API key by exchanging it for a
server token, then offers to store it in the system keychain.

Usage:
    1. Log in to the Basiq dashboard (https://dashboard.basiq.io/)
    2. Open your application and copy its API key
    3. Run this script and paste the key when prompted
       (press Enter to re-check a key that is already configured)
    4. Store it in the keychain, or add BASIQ_API_KEY to your .env file
"""

import os
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv

from integrations.basiq_client import BasiqClient
from integrations.exceptions import AggregatorError
from integrations.token_cache import TokenCache
from services.credential_manager import get_credential, set_credential


def _get_setting(key: str) -> str:
    """Look up a setting from env vars, .env file, or keychain."""
    value = os.environ.get(key)
    if value:
        return value
    return get_credential(key) or ""


def _offer_keychain_store(credentials: dict[str, str]) -> None:
    """Prompt the user to store credentials in the system keychain."""
    answer = input("\nStore these credentials in the keychain? [Y/n] ").strip().lower()
    if answer in ("", "y", "yes"):
        for key, value in credentials.items():
            if set_credential(key, value):
                print(f"  Stored {key} in keychain")
            else:
                print(f"  Failed to store {key}")
    else:
        print("  Skipped keychain storage.")


def validate_api_key(api_key: str) -> None:
    """Exchange ``api_key`` for a server token.

    A private token cache is used so a rejected key never touches the
    process-wide token.

    Raises:
        AggregatorError: The key was rejected or Basiq was unreachable.
    """
    with BasiqClient(api_key=api_key, token_cache=TokenCache()) as client:
        client.get_access_token()


def main():
    """Validate a Basiq API key and store it."""
    load_dotenv(Path(__file__).parent.parent / ".env")
    existing = _get_setting("BASIQ_API_KEY")

    print("Basiq Setup")
    print("=" * 50)
    print()
    print("Paste the API key of your Basiq application.")
    print()

    prompt = "API key (Enter to re-check the configured key): " if existing else "API key: "
    api_key = input(prompt).strip() or existing

    if not api_key:
        print("Error: No API key provided")
        sys.exit(1)

    print()
    print("Requesting a server token...")

    try:
        validate_api_key(api_key)
    except AggregatorError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print()
    print("Success! The key was accepted by Basiq.")
    print()
    print("To use it from .env instead of the keychain, add:")
    print()
    print("BASIQ_API_KEY=<your key>")
    _offer_keychain_store({"BASIQ_API_KEY": api_key})


if __name__ == "__main__":
    main()
