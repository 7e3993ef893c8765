"""Timestamp utilities for consistent datetime handling across the pipeline."""

from datetime import date, datetime, timezone
from typing import Any, Optional

from common_lib.logger import get_logger

logger = get_logger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utcnow() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Convert upstream timestamp values to an aware UTC datetime.

    NVD emits naive ISO strings that are implicitly UTC
    (``2024-05-01T15:15:07.247``); CISA KEV emits plain dates (``2024-05-01``).

    Args:
        value: datetime, date, ISO format string, or None

    Returns:
        Aware UTC datetime, or None when the value is empty or unparsable
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Invalid datetime format encountered: %s", value)
            return None
    else:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_nvd_timestamp(value: datetime) -> str:
    """Format a datetime the way the NVD API expects (``2024-05-01T00:00:00.000Z``)."""
    aware = parse_timestamp(value) or utcnow()
    return aware.strftime("%Y-%m-%dT%H:%M:%S.") + f"{aware.microsecond // 1000:03d}Z"
