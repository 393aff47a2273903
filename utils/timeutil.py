"""Timestamp helpers.

All timestamps are persisted as UTC ISO-8601 strings with millisecond
precision and a trailing ``Z`` so that string order equals time order.
"""
from datetime import datetime, timezone


def utc_now():
    return datetime.now(timezone.utc)


def to_iso(dt):
    """Canonical storage form: ``2024-01-15T10:30:00.000Z``."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    # strftime("%Y") drops the zero padding of years < 1000 on some platforms.
    return (f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}T"
            f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d}.{dt.microsecond // 1000:03d}Z")


def parse_timestamp(value):
    """Parse an ISO-8601 string (or datetime) into an aware UTC datetime.

    Naive values are taken as UTC. Raises ValueError when unparseable.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise ValueError("empty timestamp")
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"unsupported timestamp type: {type(value).__name__}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def canonical(value):
    """Parse then re-serialise, truncating to millisecond precision."""
    return to_iso(parse_timestamp(value))
