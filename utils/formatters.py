"""Formatting utilities for display."""
from datetime import datetime, timezone

from utils.timeutil import parse_timestamp

COMPARATOR_SYMBOLS = {
    "GT": ">",
    "LT": "<",
    "GTE": ">=",
    "LTE": "<=",
    "EQ": "==",
}


def format_value(value, decimals=2):
    """Format a metric value: integers stay integers, floats get fixed decimals."""
    if value is None:
        return "N/A"
    value = float(value)
    if value.is_integer() and abs(value) < 1e15:
        return f"{int(value):,}"
    return f"{value:,.{decimals}f}"


def format_condition(metric_name, comparator, threshold):
    """Render a rule condition, e.g. 'cpu > 90'."""
    comp = comparator.value if hasattr(comparator, "value") else str(comparator)
    symbol = COMPARATOR_SYMBOLS.get(comp, comp)
    return f"{metric_name} {symbol} {format_value(threshold)}"


def format_cooldown(seconds):
    """Format cooldown seconds compactly: 90 -> '1m30s', 0 -> 'none'."""
    if not seconds:
        return "none"
    seconds = int(seconds)
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    if secs:
        parts.append(f"{secs}s")
    return "".join(parts)


def format_timestamp(ts):
    """Format a datetime or stored ISO string to human-readable string."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        try:
            ts = parse_timestamp(ts)
        except ValueError:
            return ts
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC")


def time_ago(dt, now=None):
    """Return human-readable time since dt. E.g., '3h ago', '2d ago'."""
    if dt is None:
        return "never"
    if isinstance(dt, str):
        dt = parse_timestamp(dt)
    now = now or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    seconds = int((now - dt).total_seconds())

    if seconds < 60:
        return f"{seconds}s ago"
    elif seconds < 3600:
        return f"{seconds // 60}m ago"
    elif seconds < 86400:
        return f"{seconds // 3600}h ago"
    else:
        return f"{seconds // 86400}d ago"
