"""Common utility functions used across the bill tracker."""

import time
from datetime import datetime, timezone


def sqldatetime(timestamp: int | float) -> str:
    """Convert a Unix timestamp to the database's native datetime text (UTC).

    Examples:
        0 -> '1970-01-01 00:00:00'
    """
    try:
        value = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OverflowError, OSError) as exc:
        raise ValueError(f"timestamp {timestamp} is out of range") from exc
    return format_datetime(value)


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 date or date-time string into a naive UTC datetime.

    Accepts '2024-01-01', '2024-01-01T09:30:00', '2024-01-01 09:30:00' and
    offset-qualified forms ('...Z', '...+02:00'); offsets are normalised to
    UTC so stored values compare correctly as text.

    Raises:
        ValueError: If the string is not a valid date-time.
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_datetime(value: datetime) -> str:
    """Format a datetime in the database's native text format.

    The year is always four digits; strftime('%Y') drops the padding for
    years below 1000 on some platforms, which breaks text ordering.
    """
    return f"{value.year:04d}-{value:%m-%d %H:%M:%S}"


def utcnow() -> datetime:
    """Return the current naive UTC time (matches stored timestamps)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def elapsed(start_time: float) -> str:
    """Format elapsed time from start_time to now as human-readable string.

    Examples:
        30s, 2m 15s, 1h 05m 30s
    """
    secs = int(time.time() - start_time)
    m, s = divmod(secs, 60)
    h, m = divmod(m, 60)
    if h:
        return f"{h}h {m:02d}m {s:02d}s"
    return f"{m}m {s:02d}s"
