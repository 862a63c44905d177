"""UTC timestamp utilities.

Centralizes fill-time handling so every module parses and formats broker
timestamps the same way. Fill times are stored as naive UTC datetimes.

Usage:
    from src.utils.timezone import parse_utc_timestamp, format_utc_iso

    fill_time = parse_utc_timestamp("2026-02-10 15:01:01.116Z")
    format_utc_iso(fill_time)   # "2026-02-10T15:01:01.116Z"
"""

from datetime import datetime, timezone


def parse_utc_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 timestamp into a naive UTC datetime.

    Accepts a space or ``T`` between date and time, an optional ``Z`` or
    numeric offset, and fractional seconds. Values without an offset are
    taken as UTC.

    Returns:
        Naive UTC datetime, or None if the value cannot be parsed.
    """
    if not value:
        return None

    text = value.strip()
    if " " in text and "T" not in text:
        text = text.replace(" ", "T", 1)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def format_utc_iso(value: datetime) -> str:
    """Format a naive UTC datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``.

    Millisecond precision, matching what broker exports carry, so the same
    execution always renders to the same string.
    """
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def utc_now() -> datetime:
    """Current time as a naive UTC datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
