"""Tests for services.credential_manager."""

from unittest.mock import patch

from services.credential_manager import (
    CREDENTIAL_KEYS,
    SERVICE_NAME,
    get_credential,
    set_credential,
)


# ---------------------------------------------------------------------------
# get_credential
# ---------------------------------------------------------------------------


class TestGetCredential:
    def test_returns_value(self):
        with patch("services.credential_manager.keyring") as mock_keyring:
            mock_keyring.get_password.return_value = "secret123"
            result = get_credential("BASIQ_API_KEY")
        assert result == "secret123"
        mock_keyring.get_password.assert_called_once_with(SERVICE_NAME, "BASIQ_API_KEY")

    def test_returns_none_when_not_found(self):
        with patch("services.credential_manager.keyring") as mock_keyring:
            mock_keyring.get_password.return_value = None
            result = get_credential("BASIQ_API_KEY")
        assert result is None

    def test_returns_none_on_keyring_exception(self):
        with patch("services.credential_manager.keyring") as mock_keyring:
            mock_keyring.get_password.side_effect = Exception("no backend")
            result = get_credential("BASIQ_API_KEY")
        assert result is None


# ---------------------------------------------------------------------------
# set_credential
# ---------------------------------------------------------------------------


class TestSetCredential:
    def test_stores_value(self):
        with patch("services.credential_manager.keyring") as mock_keyring:
            result = set_credential("BASIQ_API_KEY", "secret123")
        assert result is True
        mock_keyring.set_password.assert_called_once_with(
            SERVICE_NAME, "BASIQ_API_KEY", "secret123"
        )

    def test_rejects_non_credential_key(self):
        with patch("services.credential_manager.keyring") as mock_keyring:
            result = set_credential("NOT_A_REAL_KEY", "secret123")
        assert result is False
        mock_keyring.set_password.assert_not_called()

    def test_rejects_empty_value(self):
        with patch("services.credential_manager.keyring") as mock_keyring:
            assert set_credential("BASIQ_API_KEY", "") is False
            assert set_credential("BASIQ_API_KEY", "   ") is False
        mock_keyring.set_password.assert_not_called()

    def test_returns_false_on_keyring_exception(self):
        with patch("services.credential_manager.keyring") as mock_keyring:
            mock_keyring.set_password.side_effect = Exception("keyring error")
            result = set_credential("BASIQ_API_KEY", "secret123")
        assert result is False


# ---------------------------------------------------------------------------
# CREDENTIAL_KEYS
# ---------------------------------------------------------------------------


class TestCredentialKeys:
    def test_contains_expected_keys(self):
        assert CREDENTIAL_KEYS == {"BASIQ_API_KEY"}

    def test_excludes_non_secret_keys(self):
        assert "DATABASE_URL" not in CREDENTIAL_KEYS
        assert "BASIQ_API_URL" not in CREDENTIAL_KEYS
        assert "LOG_LEVEL" not in CREDENTIAL_KEYS

    def test_is_frozen(self):
        assert isinstance(CREDENTIAL_KEYS, frozenset)
