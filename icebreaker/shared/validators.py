"""Shared validation utilities"""

import re
import uuid
from datetime import date, time
from typing import Optional

import bleach

TIME_OF_DAY_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def validate_uuid(value: str) -> bool:
    """Validate UUID format"""
    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def parse_time_of_day(value) -> time:
    """
    Parse a time of day with whole-minute granularity.

    Args:
        value: "HH:MM" string or datetime.time

    Returns:
        datetime.time with seconds and microseconds zeroed

    Raises:
        ValueError: If the value is not a valid HH:MM time in [00:00, 23:59]
    """
    if isinstance(value, time):
        if value.second or value.microsecond:
            raise ValueError("Time of day must have whole-minute granularity")
        return value.replace(tzinfo=None)

    if not isinstance(value, str):
        raise ValueError(f"Invalid time of day: {value!r}")

    match = TIME_OF_DAY_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time of day (expected HH:MM): {value!r}")

    return time(int(match.group(1)), int(match.group(2)))


def format_time_of_day(value: time) -> str:
    """Format a time of day as zero-padded HH:MM"""
    return f"{value.hour:02d}:{value.minute:02d}"


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def time_from_minutes(minutes: int) -> time:
    """Inverse of minutes_since_midnight for values in [0, 1439]"""
    if not 0 <= minutes < 24 * 60:
        raise ValueError(f"Minutes out of range for a time of day: {minutes}")
    return time(minutes // 60, minutes % 60)


def parse_iso_date(value) -> date:
    """Parse YYYY-MM-DD (or pass through a date)"""
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError as e:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD): {value!r}") from e


def validate_optional_text(value: Optional[str], max_length: int) -> Optional[str]:
    """Strip free text and enforce a maximum length"""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if len(value) > max_length:
        raise ValueError(f"Text must be at most {max_length} characters")
    return value


def sanitize_text(value: Optional[str], max_length: int) -> Optional[str]:
    """Like validate_optional_text, with any markup stripped first"""
    if value is None:
        return None
    return validate_optional_text(bleach.clean(value, tags=[], strip=True), max_length)
