"""
Slot Intersection Engine
Turns two availability models into chronological candidate meeting slots.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Optional

from ...config import MAX_SLOTS, SLOT_HORIZON_DAYS, SLOT_LENGTH_MINUTES
from ...shared.validators import format_time_of_day, time_from_minutes
from .availability import AvailabilityModel, Window, weekday_name


@dataclass(frozen=True)
class TimeSlot:
    day: str
    date: date
    start_time: time
    end_time: time
    rationale: Optional[str] = None

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.date, self.start_time)

    @property
    def key(self) -> tuple[date, time, time]:
        return self.date, self.start_time, self.end_time

    def with_rationale(self, rationale: Optional[str]) -> "TimeSlot":
        return TimeSlot(self.day, self.date, self.start_time, self.end_time, rationale)

    def to_dict(self) -> dict:
        return {
            "day": self.day,
            "date": self.date.isoformat(),
            "startTime": format_time_of_day(self.start_time),
            "endTime": format_time_of_day(self.end_time),
            "rationale": self.rationale,
        }


def intersect_windows(a: list[Window], b: list[Window]) -> list[Window]:
    """Intersection of two sorted, non-overlapping window lists"""
    result: list[Window] = []
    i = j = 0
    while i < len(a) and j < len(b):
        start = max(a[i][0], b[j][0])
        end = min(a[i][1], b[j][1])
        if start < end:
            result.append((start, end))
        if a[i][1] < b[j][1]:
            i += 1
        else:
            j += 1
    return result


def compute_overlap(
    a: AvailabilityModel,
    b: AvailabilityModel,
    now: datetime,
    horizon_days: int = SLOT_HORIZON_DAYS,
    slot_length_minutes: int = SLOT_LENGTH_MINUTES,
    max_slots: int = MAX_SLOTS,
) -> list[TimeSlot]:
    """
    Candidate slots both users are free for, over the next `horizon_days`
    calendar days (today included).

    Each mutual window yields back-to-back slots of `slot_length_minutes`
    from its start; a remainder shorter than one slot is dropped. Slots not
    strictly after `now` are skipped. Output is chronological and capped at
    `max_slots`. An empty list means there is no mutual availability.
    """
    if slot_length_minutes <= 0:
        raise ValueError("slot_length_minutes must be positive")
    if horizon_days < 0 or max_slots < 0:
        raise ValueError("horizon_days and max_slots must not be negative")

    slots: list[TimeSlot] = []
    today = now.date()

    for offset in range(horizon_days):
        if len(slots) >= max_slots:
            break

        on = today + timedelta(days=offset)
        label = weekday_name(on).capitalize()

        for start, end in intersect_windows(a.windows_for(on), b.windows_for(on)):
            cursor = start
            while cursor + slot_length_minutes <= end and len(slots) < max_slots:
                slot = TimeSlot(
                    day=label,
                    date=on,
                    start_time=time_from_minutes(cursor),
                    end_time=time_from_minutes(cursor + slot_length_minutes),
                )
                if slot.starts_at > now:
                    slots.append(slot)
                cursor += slot_length_minutes

    return slots
