"""
Small helpers shared by the store, service and scheduler.
"""

import uuid
from datetime import UTC, datetime


def generate_request_id() -> str:
    """Generate a unique request ID."""
    return f"req-{uuid.uuid4().hex[:16]}"


def utc_now() -> datetime:
    return datetime.now(UTC)


def now_utc_iso() -> str:
    """Return current UTC time in ISO format with microseconds."""
    return utc_now().isoformat(timespec="microseconds")


def parse_timestamp(value: str | datetime) -> datetime:
    """
    Parse a stored or client-supplied timestamp.

    Naive values are treated as UTC.
    """
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(value.strip())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def epoch_seconds(value: str | datetime) -> int:
    """Integer-second epoch value of a timestamp."""
    return int(parse_timestamp(value).timestamp())
