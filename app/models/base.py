from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import String

# NOTE: MySQL requires FK columns to match referenced column type exactly.
GUID_LENGTH = 36
GUID_TYPE = String(GUID_LENGTH)


def default_uuid() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns (no tz info stored)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


__all__ = ["GUID_TYPE", "GUID_LENGTH", "default_uuid", "utcnow"]
