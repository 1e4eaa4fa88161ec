"""
Derive availability from external calendar busy time.

Starts from the default Monday-Friday 09:00-17:00 template and subtracts
busy intervals date by date: each date with busy time inside its template
window gets date overrides for the remaining free gaps, or is blocked when
nothing is left.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterable, Optional

from ...config import CALENDAR_IMPORT_DAYS
from ...shared.clock import local_now
from ...shared.validators import time_from_minutes
from .availability import AvailabilityModel, Window, merge_windows

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True)
class BusyInterval:
    start: datetime
    end: datetime
    all_day: bool = False


def subtract_windows(free: list[Window], busy: list[Window]) -> list[Window]:
    """Remove merged `busy` windows from sorted `free` windows"""
    result: list[Window] = []
    for start, end in free:
        cursor = start
        for busy_start, busy_end in busy:
            if busy_end <= cursor or busy_start >= end:
                continue
            if busy_start > cursor:
                result.append((cursor, busy_start))
            cursor = max(cursor, busy_end)
            if cursor >= end:
                break
        if cursor < end:
            result.append((cursor, end))
    return result


def _busy_windows_by_date(event: BusyInterval) -> Iterable[tuple[date, Window]]:
    if event.all_day:
        # All-day end dates are exclusive
        day = event.start.date()
        last = max(event.end.date(), day + timedelta(days=1))
        while day < last:
            yield day, (0, MINUTES_PER_DAY)
            day += timedelta(days=1)
        return

    day = event.start.date()
    while day <= event.end.date():
        segment_start = event.start if day == event.start.date() else datetime.combine(day, datetime.min.time())
        start = segment_start.hour * 60 + segment_start.minute
        if day == event.end.date():
            end = event.end.hour * 60 + event.end.minute + (1 if event.end.second else 0)
        else:
            end = MINUTES_PER_DAY
        if end > start:
            yield day, (start, end)
        day += timedelta(days=1)


def import_from_external_calendar(
    events: Iterable[BusyInterval],
    today: Optional[date] = None,
    days: int = CALENDAR_IMPORT_DAYS,
    template: Optional[AvailabilityModel] = None,
) -> AvailabilityModel:
    """
    Build availability from busy intervals over [today, today + days).

    Busy time on inactive template days, outside template hours, or outside
    the import window is ignored.
    """
    today = today or local_now().date()
    template = template or AvailabilityModel.default_template()
    model = template.copy()
    window_end = today + timedelta(days=days)

    busy_by_date: dict[date, list[Window]] = defaultdict(list)
    event_count = 0
    for event in events:
        event_count += 1
        if event.end <= event.start and not event.all_day:
            continue
        for on, window in _busy_windows_by_date(event):
            if today <= on < window_end:
                busy_by_date[on].append(window)

    overridden = 0
    blocked = 0
    for on in sorted(busy_by_date):
        template_windows = template.windows_for(on)
        if not template_windows:
            continue

        free = subtract_windows(template_windows, merge_windows(busy_by_date[on]))
        if free == template_windows:
            continue

        if not free:
            model.block_date(on)
            blocked += 1
            continue

        for start, end in free:
            model.add_date_override(on, time_from_minutes(start), time_from_minutes(end), today=today)
        overridden += 1

    logger.info(
        f"📅 Imported {event_count} calendar events: {overridden} dates narrowed, {blocked} dates blocked"
    )
    return model
