"""
Best-effort availability parsing from free text.

This is a keyword/regex heuristic, not a general language parser. It
understands day names and abbreviations, day ranges, "weekday"/"weekend",
all-week phrases, one explicit time range (with optional minutes and am/pm)
and morning/afternoon/evening. It never raises: text it cannot make sense of
leaves the availability unchanged.
"""

import logging
import re
from datetime import time
from typing import Optional

from .availability import (
    DEFAULT_END,
    DEFAULT_START,
    WEEKDAYS,
    WEEKEND,
    WORKWEEK,
    AvailabilityModel,
    DayAvailability,
)

logger = logging.getLogger(__name__)

DAY_ALIASES = {
    "mon": "monday",
    "tue": "tuesday",
    "tues": "tuesday",
    "wed": "wednesday",
    "thu": "thursday",
    "thur": "thursday",
    "thurs": "thursday",
    "fri": "friday",
    "sat": "saturday",
    "sun": "sunday",
}
DAY_ALIASES.update({day: day for day in WEEKDAYS})

_DAY = r"(" + "|".join(sorted(DAY_ALIASES, key=len, reverse=True)) + r")s?"
DAY_PATTERN = re.compile(rf"\b{_DAY}\b")
DAY_RANGE_PATTERN = re.compile(rf"\b{_DAY}\s*(?:-|–|to|through|thru|until|till)\s*{_DAY}\b")
TIME_RANGE_PATTERN = re.compile(
    r"(?<!\d)(\d{1,2})(?::(\d{2}))?\s*(am|pm)?\s*(?:-|–|to|until|till|through)\s*"
    r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?(?!\d)"
)
WORKWEEK_PATTERN = re.compile(r"\b(?:weekdays?|workdays?|work week)\b")
WEEKEND_PATTERN = re.compile(r"\bweekends?\b")
ALL_WEEK_PATTERN = re.compile(r"\b(?:every ?day|daily|all week|any ?time|always|all the time)\b")

PARTS_OF_DAY = {
    "morning": (time(9, 0), time(12, 0)),
    "afternoon": (time(12, 0), time(17, 0)),
    "evening": (time(17, 0), time(21, 0)),
}


def _to_24h(hour: int, period: Optional[str]) -> int:
    if period == "pm" and hour != 12:
        return hour + 12
    if period == "am" and hour == 12:
        return 0
    return hour


def parse_time_range(text: str) -> Optional[tuple[time, time]]:
    """First explicit time range in `text`, or None when absent or invalid"""
    match = TIME_RANGE_PATTERN.search(text)
    if not match:
        return None

    start_hour, start_min, start_period, end_hour, end_min, end_period = match.groups()
    start_hour, end_hour = int(start_hour), int(end_hour)

    end_24 = _to_24h(end_hour, end_period)
    if start_period:
        start_24 = _to_24h(start_hour, start_period)
    elif end_period == "pm" and start_hour < 12 and start_hour + 12 < end_24:
        # "1-5pm" means 13:00-17:00
        start_24 = start_hour + 12
    else:
        start_24 = start_hour

    if not start_period and not end_period and end_24 <= start_24 and end_24 < 12:
        # "9-5" means 09:00-17:00
        end_24 += 12

    if start_24 > 23 or end_24 > 23:
        return None

    try:
        start = time(start_24, int(start_min or 0))
        end = time(end_24, int(end_min or 0))
    except ValueError:
        return None

    if start >= end:
        return None
    return start, end


def parse_part_of_day(text: str) -> Optional[tuple[time, time]]:
    windows = [window for word, window in PARTS_OF_DAY.items() if word in text]
    if not windows:
        return None
    return min(w[0] for w in windows), max(w[1] for w in windows)


def parse_days(text: str) -> set[str]:
    days: set[str] = set()

    for first, last in DAY_RANGE_PATTERN.findall(text):
        start = WEEKDAYS.index(DAY_ALIASES[first])
        end = WEEKDAYS.index(DAY_ALIASES[last])
        span = (end - start) % len(WEEKDAYS)
        days.update(WEEKDAYS[(start + offset) % len(WEEKDAYS)] for offset in range(span + 1))

    days.update(DAY_ALIASES[token] for token in DAY_PATTERN.findall(text))

    if WORKWEEK_PATTERN.search(text):
        days.update(WORKWEEK)
    if WEEKEND_PATTERN.search(text):
        days.update(WEEKEND)
    if ALL_WEEK_PATTERN.search(text):
        days.update(WEEKDAYS)
    return days


def parse_from_text(free_text: Optional[str], base: Optional[AvailabilityModel] = None) -> AvailabilityModel:
    """
    Interpret a description such as "Monday to Friday, 9am-5pm".

    When days are mentioned the weekly template is rebuilt from them (all
    other days inactive) while date overrides and blocked dates of `base`
    are kept. A time range without days is applied to the days already
    active in `base`. Anything else returns `base` unchanged.
    """
    if base is None:
        base = AvailabilityModel()
    if not free_text or not free_text.strip():
        return base

    text = free_text.lower()
    try:
        days = parse_days(text)
        window = parse_time_range(text) or parse_part_of_day(text)
    except (ValueError, KeyError) as e:
        logger.warning(f"⚠️ Could not parse availability text {free_text!r}: {e}")
        return base

    if not days and window is None:
        logger.debug(f"ℹ️ No day or time tokens found in {free_text!r}")
        return base

    if days:
        start, end = window or (DEFAULT_START, DEFAULT_END)
        result = AvailabilityModel(
            date_overrides=list(base.date_overrides),
            blocked_dates=list(base.blocked_dates),
        )
        for day in days:
            result.days[day] = DayAvailability(True, start, end)
        return result

    active = base.active_days()
    if not active:
        return base

    result = base.copy()
    start, end = window
    for day in active:
        result.days[day] = DayAvailability(True, start, end)
    return result
