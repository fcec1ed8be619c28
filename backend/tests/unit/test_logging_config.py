"""Tests for centralized logging configuration."""

import logging

import pytest
from pydantic import ValidationError

from logging_config import CredentialRedactingFilter, setup_logging


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_root_logger_level_default_info(self, monkeypatch):
        """Default LOG_LEVEL should set root logger to INFO."""
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        # Re-import settings so the monkeypatched env is picked up
        from config import Settings
        test_settings = Settings()
        monkeypatch.setattr("logging_config.settings", test_settings)

        setup_logging()

        assert logging.getLogger().level == logging.INFO

    def test_root_logger_level_from_settings(self, monkeypatch):
        """LOG_LEVEL setting should control root logger level."""
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        from config import Settings
        test_settings = Settings()
        monkeypatch.setattr("logging_config.settings", test_settings)

        setup_logging()

        assert logging.getLogger().level == logging.DEBUG

    def test_third_party_loggers_suppressed(self, monkeypatch):
        """Noisy third-party loggers should be set to WARNING."""
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        from config import Settings
        test_settings = Settings()
        monkeypatch.setattr("logging_config.settings", test_settings)

        setup_logging()

        for name in ("sqlalchemy.engine", "sqlalchemy.pool", "httpx", "httpcore", "urllib3"):
            assert logging.getLogger(name).level == logging.WARNING, (
                f"{name} logger not suppressed"
            )

    def test_redaction_filter_installed(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        from config import Settings
        monkeypatch.setattr("logging_config.settings", Settings())

        setup_logging()

        handlers = logging.getLogger().handlers
        assert handlers
        for handler in handlers:
            assert any(isinstance(f, CredentialRedactingFilter) for f in handler.filters)

    def test_invalid_log_level_rejected(self, monkeypatch):
        """Invalid LOG_LEVEL values should raise a validation error."""
        monkeypatch.setenv("LOG_LEVEL", "VERBOS")
        from config import Settings
        with pytest.raises(ValidationError, match="LOG_LEVEL"):
            Settings()

    def test_log_level_case_insensitive(self, monkeypatch):
        """LOG_LEVEL should accept lowercase values."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        from config import Settings
        test_settings = Settings()
        assert test_settings.LOG_LEVEL == "DEBUG"


def _record(msg, *args) -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, None)


class TestCredentialRedactingFilter:
    def test_masks_bearer_token(self):
        record = _record("request failed: Authorization: Bearer eyJhbGciOi.abc-123")
        assert CredentialRedactingFilter().filter(record) is True
        assert record.getMessage() == "request failed: Authorization: Bearer [REDACTED]"

    def test_masks_basic_credential_in_args(self):
        record = _record("headers=%s", {"Authorization": "Basic NjMxMjQ1Njc4OTA="})
        CredentialRedactingFilter().filter(record)
        assert "NjMxMjQ1Njc4OTA" not in record.getMessage()
        assert "Basic [REDACTED]" in record.getMessage()

    def test_leaves_other_messages_untouched(self):
        record = _record("Account %s: %d transactions", "acc-1", 3)
        CredentialRedactingFilter().filter(record)
        assert record.args == ("acc-1", 3)
        assert record.getMessage() == "Account acc-1: 3 transactions"
