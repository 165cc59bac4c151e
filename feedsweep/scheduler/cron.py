"""
Cron Matcher
============

Minimal five-field cron evaluation (minute, hour, day-of-month, month,
day-of-week with Sunday = 0) against a UTC instant.

Supported field forms: ``*``, ``n``, ``*/n``, ``a-b``, ``a-b/n`` and comma
lists of numbers or ranges. Names and a seconds field are not supported.
"""

import logging
from datetime import datetime
from typing import List

from ..database.models import ensure_utc
from ..utils.exceptions import ValidationError, ErrorCode

logger = logging.getLogger(__name__)


FIELD_NAMES = ("minute", "hour", "day_of_month", "month", "day_of_week")

# Inclusive bounds used only by validate_cron_expression
FIELD_RANGES = {
    "minute": (0, 59),
    "hour": (0, 23),
    "day_of_month": (1, 31),
    "month": (1, 12),
    "day_of_week": (0, 7),
}


def _time_components(instant: datetime) -> List[int]:
    utc = ensure_utc(instant)
    return [
        utc.minute,
        utc.hour,
        utc.day,
        utc.month,
        utc.isoweekday() % 7,
    ]


def _parse_step(step: str) -> int:
    value = int(step)
    if value <= 0:
        raise ValueError(f"step must be positive: {step}")
    return value


def _match_part(part: str, value: int) -> bool:
    """Match one comma-free field part against a time component."""
    if part == "*":
        return True

    if part.startswith("*/"):
        return value % _parse_step(part[2:]) == 0

    if "-" in part:
        bounds, _, step = part.partition("/")
        start_text, _, end_text = bounds.partition("-")
        start, end = int(start_text), int(end_text)
        if not start <= value <= end:
            return False
        return not step or (value - start) % _parse_step(step) == 0

    return int(part) == value


def match_field(field: str, value: int) -> bool:
    """Match a single cron field; raises ValueError on malformed input."""
    if not field:
        raise ValueError("empty cron field")

    parts = field.split(",")
    if any(not part for part in parts):
        raise ValueError(f"empty list element in '{field}'")

    return any(_match_part(part, value) for part in parts)


def cron_matches(expression: str, instant: datetime) -> bool:
    """Check whether a five-field cron expression is due at an instant.

    The instant is read in UTC; naive datetimes are taken to already be UTC.
    Malformed expressions never match and never raise.
    """
    try:
        fields = expression.split()
        if len(fields) != 5:
            return False

        components = _time_components(instant)
        return all(match_field(field, value) for field, value in zip(fields, components))

    except (ValueError, TypeError, AttributeError) as e:
        logger.debug(f"Cron expression '{expression}' cannot be evaluated: {e}")
        return False


def validate_cron_expression(expression: str) -> str:
    """Validate a cron expression for storage.

    Returns:
        The expression with whitespace normalized

    Raises:
        ValidationError: If the matcher could not evaluate the expression
    """
    if not expression or not isinstance(expression, str):
        raise ValidationError(
            "Cron expression is required",
            field_name="cron_expression",
            error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
        )

    fields = expression.split()
    if len(fields) != 5:
        raise ValidationError(
            f"Cron expression must have 5 fields, got {len(fields)}",
            field_name="cron_expression",
        )

    for name, field in zip(FIELD_NAMES, fields):
        low, high = FIELD_RANGES[name]
        try:
            # Probing every in-range value surfaces any parse error in the field
            matched = [value for value in range(low, high + 1) if match_field(field, value)]
        except ValueError as e:
            raise ValidationError(
                f"Invalid {name} field '{field}': {e}",
                field_name="cron_expression",
            ) from e

        if not matched:
            raise ValidationError(
                f"{name} field '{field}' never matches",
                field_name="cron_expression",
                error_code=ErrorCode.VALIDATION_OUT_OF_RANGE,
            )

    return " ".join(fields)
