"""Tests for the Basiq setup script."""

from unittest.mock import MagicMock, patch

import pytest

from integrations.exceptions import AggregatorAuthError
from scripts.setup_basiq import main, validate_api_key


class TestValidateApiKey:
    @patch("scripts.setup_basiq.BasiqClient")
    def test_uses_private_token_cache(self, mock_client_cls):
        mock_client = MagicMock()
        mock_client_cls.return_value.__enter__.return_value = mock_client

        validate_api_key("a2V5")

        kwargs = mock_client_cls.call_args.kwargs
        assert kwargs["api_key"] == "a2V5"
        assert kwargs["token_cache"] is not None
        mock_client.get_access_token.assert_called_once_with()

    @patch("scripts.setup_basiq.BasiqClient")
    def test_rejected_key_raises(self, mock_client_cls):
        mock_client_cls.return_value.__enter__.return_value.get_access_token.side_effect = (
            AggregatorAuthError("Basiq token request failed (HTTP 401)", status_code=401)
        )

        with pytest.raises(AggregatorAuthError):
            validate_api_key("bad")


class TestMain:
    @patch("scripts.setup_basiq.load_dotenv")
    @patch("scripts.setup_basiq.set_credential", return_value=True)
    @patch("scripts.setup_basiq.validate_api_key")
    @patch("scripts.setup_basiq._get_setting", return_value="")
    def test_stores_validated_key(self, _setting, mock_validate, mock_set, _dotenv, capsys):
        with patch("builtins.input", side_effect=["a2V5", "y"]):
            main()

        mock_validate.assert_called_once_with("a2V5")
        mock_set.assert_called_once_with("BASIQ_API_KEY", "a2V5")
        assert "Stored BASIQ_API_KEY in keychain" in capsys.readouterr().out

    @patch("scripts.setup_basiq.load_dotenv")
    @patch("scripts.setup_basiq.set_credential")
    @patch("scripts.setup_basiq.validate_api_key")
    @patch("scripts.setup_basiq._get_setting", return_value="existing-key")
    def test_enter_rechecks_configured_key(self, _setting, mock_validate, mock_set, _dotenv):
        with patch("builtins.input", side_effect=["", "n"]):
            main()

        mock_validate.assert_called_once_with("existing-key")
        mock_set.assert_not_called()

    @patch("scripts.setup_basiq.load_dotenv")
    @patch("scripts.setup_basiq._get_setting", return_value="")
    def test_no_key_exits(self, _setting, _dotenv):
        with patch("builtins.input", return_value=""):
            with pytest.raises(SystemExit) as exc_info:
                main()
        assert exc_info.value.code == 1

    @patch("scripts.setup_basiq.load_dotenv")
    @patch("scripts.setup_basiq.set_credential")
    @patch("scripts.setup_basiq.validate_api_key")
    @patch("scripts.setup_basiq._get_setting", return_value="")
    def test_rejected_key_exits_without_storing(
        self, _setting, mock_validate, mock_set, _dotenv, capsys
    ):
        mock_validate.side_effect = AggregatorAuthError(
            "Basiq token request failed (HTTP 401)", status_code=401
        )

        with patch("builtins.input", return_value="bad"):
            with pytest.raises(SystemExit):
                main()

        mock_set.assert_not_called()
        assert "HTTP 401" in capsys.readouterr().out
