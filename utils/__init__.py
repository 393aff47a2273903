"""Utility modules for Metric Watch."""
from utils.logger import setup_logging
from utils.errors import MetricWatchError, Unauthenticated, ValidationError, NotFound, StorageError
from utils.timeutil import utc_now, to_iso, parse_timestamp
from utils.formatters import format_value, format_condition, format_cooldown, format_timestamp, time_ago
