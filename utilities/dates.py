"""
ISO-8601 date helpers shared by the request models and the record store.
"""

from datetime import datetime, timezone
from typing import Any, Optional

# Partial dates that fromisoformat rejects
_PARTIAL_FORMATS = ["%Y-%m", "%Y"]


def parse_iso_datetime(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 date or datetime string.

    Date-only values and datetimes without an offset are read as UTC so that
    every parsed value can be compared with every other.

    Args:
        value: Candidate value, usually a string from a request or a record

    Returns:
        Timezone-aware datetime, or None when the value is not a valid date
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text[-1] in ("Z", "z"):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = None
        for fmt in _PARTIAL_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                pass
        if parsed is None:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso_timestamp(value: datetime) -> str:
    """Render a datetime as UTC with millisecond precision, e.g. 2024-01-15T10:30:00.000Z."""
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
