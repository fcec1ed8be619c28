"""Keyring-backed credential storage for the aggregator secret.

A thin wrapper around ``keyring`` so the Basiq API key can live in the
OS keychain instead of a plaintext ``.env`` file. Lookups never raise:
a missing backend or entry simply yields ``None`` and the settings
loader falls through to environment variables.
"""

import logging

import keyring

logger = logging.getLogger(__name__)

SERVICE_NAME = "bankfeed"

CREDENTIAL_KEYS: frozenset[str] = frozenset({"BASIQ_API_KEY"})


def get_credential(key: str) -> str | None:
    """Retrieve a credential from the keychain.

    Args:
        key: The credential name (e.g. ``"BASIQ_API_KEY"``).

    Returns:
        The credential value, or ``None`` if not found or the keychain
        backend is unavailable.
    """
    try:
        return keyring.get_password(SERVICE_NAME, key)
    except Exception:
        logger.debug("keyring lookup failed for %s", key, exc_info=True)
        return None


def set_credential(key: str, value: str) -> bool:
    """Store a credential in the keychain.

    Only keys listed in :data:`CREDENTIAL_KEYS` are accepted.

    Returns:
        ``True`` if stored successfully, ``False`` otherwise.
    """
    if key not in CREDENTIAL_KEYS:
        logger.warning("Attempted to store non-credential key: %s", key)
        return False
    if not value or not value.strip():
        logger.warning("Attempted to store empty value for %s", key)
        return False

    try:
        keyring.set_password(SERVICE_NAME, key, value)
        logger.info("Stored %s in keychain", key)
        return True
    except Exception:
        logger.warning("Failed to store %s in keychain", key, exc_info=True)
        return False
