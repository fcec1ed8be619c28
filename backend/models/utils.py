"""Shared utilities for ORM models."""

import uuid
from datetime import datetime, timezone


def generate_uuid() -> str:
    """Generate a UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Current time as naive UTC (SQLite strips tzinfo on round trip)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
