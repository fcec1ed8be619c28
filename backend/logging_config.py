"""Centralized logging configuration."""

import logging
import re

from config import settings

# Authorization header values that may leak into exception messages
# (e.g. an httpx request repr) must never reach the log output.
_CREDENTIAL_RE = re.compile(r"\b(Bearer|Basic)\s+[A-Za-z0-9._~+/=-]+")


class CredentialRedactingFilter(logging.Filter):
    """Mask bearer/basic credentials in formatted log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = _CREDENTIAL_RE.sub(r"\1 [REDACTED]", message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging() -> None:
    """Configure logging for the application.

    Sets root logger level from settings.LOG_LEVEL, installs the
    credential redaction filter on every root handler, and suppresses
    noisy third-party loggers to WARNING.
    """
    logging.basicConfig(
        format="%(asctime)s %(levelname)-8s %(name)s  %(message)s",
        datefmt="%H:%M:%S",
        level=getattr(logging, settings.LOG_LEVEL),
        force=True,
    )

    redactor = CredentialRedactingFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(redactor)

    for name in (
        "sqlalchemy.engine",
        "sqlalchemy.pool",
        "httpx",
        "httpcore",
        "urllib3",
        "keyring",
    ):
        logging.getLogger(name).setLevel(logging.WARNING)
