"""Field validators for request payloads. Each raises ValidationError naming the field."""
import math
from numbers import Real

from models.enums import Comparator
from utils.errors import ValidationError
from utils.timeutil import parse_timestamp


def require_object(body):
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def require_text(value, field, message=None):
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(message or f"{field} is required", field=field)
    return text


def require_number(value, field):
    """Accept real numbers and numeric strings; reject bools, NaN and infinities."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number", field=field)
    if not isinstance(value, Real) and not (isinstance(value, str) and value.strip()):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        number = float(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number", field=field)
    except OverflowError:
        # Integers beyond the float range.
        raise ValidationError(f"{field} must be a finite number", field=field)
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a finite number", field=field)
    return number


def require_comparator(value):
    comp = Comparator.parse(value) if isinstance(value, str) else None
    if comp is None:
        names = ", ".join(c.value for c in Comparator)
        raise ValidationError(f"comparator must be one of {names}", field="comparator")
    return comp


def require_cooldown(value):
    try:
        seconds = require_number(value, "cooldown_seconds")
    except ValidationError:
        raise ValidationError("cooldown_seconds must be 0 or a positive number", field="cooldown_seconds")
    if seconds < 0:
        raise ValidationError("cooldown_seconds must be 0 or a positive number", field="cooldown_seconds")
    return seconds


def optional_timestamp(value, field="timestamp"):
    """Parse an optional ISO timestamp. None and "" mean absent."""
    if value is None or value == "":
        return None
    try:
        return parse_timestamp(value)
    except (ValueError, TypeError):
        raise ValidationError(f"{field} must be a valid ISO timestamp", field=field)
