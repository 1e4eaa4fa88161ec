"""
Availability Model
A user's recurring weekly free time plus date-specific exceptions.

Precedence for a concrete calendar date:
1. a blocked date has no window at all
2. date overrides for that date (merged) replace the weekday window entirely
3. otherwise the weekday window, if that weekday is active
"""

import copy
from dataclasses import dataclass, field
from datetime import date, time
from typing import Optional

from ...shared.clock import local_now
from ...shared.validators import (
    format_time_of_day,
    minutes_since_midnight,
    parse_iso_date,
    parse_time_of_day,
)
from .errors import InvalidRangeError, PastDateError

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
WORKWEEK = WEEKDAYS[:5]
WEEKEND = WEEKDAYS[5:]

DEFAULT_START = time(9, 0)
DEFAULT_END = time(17, 0)

Window = tuple[int, int]  # minutes since midnight, [start, end)


def weekday_name(on: date) -> str:
    return WEEKDAYS[on.weekday()]


def normalize_weekday(day: str) -> str:
    """Accept 'Monday', 'monday' or 'mon'"""
    key = (day or "").strip().lower()
    for name in WEEKDAYS:
        if key == name or key == name[:3]:
            return name
    raise ValueError(f"Unknown weekday: {day!r}")


def check_range(start: time, end: time) -> None:
    if start >= end:
        raise InvalidRangeError(
            f"Start time {format_time_of_day(start)} must be before end time {format_time_of_day(end)}"
        )


def merge_windows(windows: list[Window]) -> list[Window]:
    """Sort windows and merge any that overlap or touch"""
    merged: list[Window] = []
    for start, end in sorted(windows):
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


@dataclass
class DayAvailability:
    active: bool = False
    start: time = DEFAULT_START
    end: time = DEFAULT_END

    def window(self) -> Optional[Window]:
        if not self.active:
            return None
        return minutes_since_midnight(self.start), minutes_since_midnight(self.end)


@dataclass
class DateSlot:
    date: date
    start: time
    end: time

    def window(self) -> Window:
        return minutes_since_midnight(self.start), minutes_since_midnight(self.end)


def _inactive_week() -> dict[str, DayAvailability]:
    return {day: DayAvailability() for day in WEEKDAYS}


@dataclass
class AvailabilityModel:
    days: dict[str, DayAvailability] = field(default_factory=_inactive_week)
    date_overrides: list[DateSlot] = field(default_factory=list)
    blocked_dates: list[date] = field(default_factory=list)

    @classmethod
    def default_template(cls) -> "AvailabilityModel":
        """Monday to Friday, 09:00-17:00"""
        model = cls()
        for day in WORKWEEK:
            model.days[day] = DayAvailability(True, DEFAULT_START, DEFAULT_END)
        return model

    def copy(self) -> "AvailabilityModel":
        return copy.deepcopy(self)

    def set_day(self, day: str, active: bool, start, end) -> "AvailabilityModel":
        name = normalize_weekday(day)
        start_time = parse_time_of_day(start)
        end_time = parse_time_of_day(end)
        check_range(start_time, end_time)
        self.days[name] = DayAvailability(bool(active), start_time, end_time)
        return self

    def add_date_override(self, on, start, end, today: Optional[date] = None) -> "AvailabilityModel":
        on = parse_iso_date(on)
        today = today or local_now().date()
        if on < today:
            raise PastDateError(f"Cannot add availability for a past date ({on.isoformat()})")

        start_time = parse_time_of_day(start)
        end_time = parse_time_of_day(end)
        check_range(start_time, end_time)

        self.date_overrides.append(DateSlot(on, start_time, end_time))
        self.date_overrides.sort(key=lambda slot: (slot.date, slot.start))
        return self

    def block_date(self, on) -> "AvailabilityModel":
        on = parse_iso_date(on)
        if on not in self.blocked_dates:
            self.blocked_dates.append(on)
            self.blocked_dates.sort()
        return self

    def active_days(self) -> list[str]:
        return [day for day in WEEKDAYS if self.days[day].active]

    def windows_for(self, on: date) -> list[Window]:
        """Free windows on a concrete date, merged and in chronological order"""
        if on in self.blocked_dates:
            return []

        overrides = [slot.window() for slot in self.date_overrides if slot.date == on]
        if overrides:
            return merge_windows(overrides)

        window = self.days[weekday_name(on)].window()
        return [window] if window else []

    # ------------------------------------------------------------------
    # Serialization (stored as JSON on the profile, same shape on the wire)
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        data = {
            day: {
                "active": self.days[day].active,
                "start": format_time_of_day(self.days[day].start),
                "end": format_time_of_day(self.days[day].end),
            }
            for day in WEEKDAYS
        }
        data["dateOverrides"] = [
            {
                "date": slot.date.isoformat(),
                "start": format_time_of_day(slot.start),
                "end": format_time_of_day(slot.end),
            }
            for slot in self.date_overrides
        ]
        data["blockedDates"] = [d.isoformat() for d in self.blocked_dates]
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "AvailabilityModel":
        """
        Decode stored availability.

        Missing days default to inactive 09:00-17:00. Ranges are validated
        for active days and for every date override.

        Raises:
            InvalidRangeError: An active day or override has start >= end
            ValueError: Malformed time or date strings
        """
        model = cls()
        if not data:
            return model

        for day in WEEKDAYS:
            entry = data.get(day)
            if not entry:
                continue
            active = bool(entry.get("active", False))
            start = parse_time_of_day(entry.get("start") or "09:00")
            end = parse_time_of_day(entry.get("end") or "17:00")
            if active:
                check_range(start, end)
            model.days[day] = DayAvailability(active, start, end)

        for entry in data.get("dateOverrides") or []:
            slot = DateSlot(
                parse_iso_date(entry["date"]),
                parse_time_of_day(entry["start"]),
                parse_time_of_day(entry["end"]),
            )
            check_range(slot.start, slot.end)
            model.date_overrides.append(slot)
        model.date_overrides.sort(key=lambda slot: (slot.date, slot.start))

        for value in data.get("blockedDates") or []:
            model.block_date(value)

        return model
