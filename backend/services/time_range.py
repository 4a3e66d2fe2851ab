from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import time

from core.errors import ValidationError


_HHMM_RE = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")

DAYS_PER_WEEK = 7


def parse_hhmm(value: str) -> int:
    """Return minutes since midnight for an ``HH:MM`` (24h) string."""

    m = _HHMM_RE.match(str(value or "").strip())
    if m is None:
        raise ValidationError("Invalid time format. Use HH:MM format", code="INVALID_TIME_FORMAT")
    return int(m.group(1)) * 60 + int(m.group(2))


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def minutes_to_time(minutes: int) -> time:
    return time(hour=minutes // 60, minute=minutes % 60)


def format_time(value: time) -> str:
    return value.strftime("%H:%M")


@dataclass(frozen=True)
class TimeRange:
    """A recurring weekly slot: opaque day index 0-6 plus a same-day clock range.

    ``start``/``end`` are minutes since midnight. Overlap is half-open, so a
    range ending at 10:00 does not overlap one starting at 10:00.
    """

    day_of_week: int
    start: int
    end: int

    @classmethod
    def parse(cls, day_of_week: int, start_time: str, end_time: str) -> "TimeRange":
        return cls(day_of_week=int(day_of_week), start=parse_hhmm(start_time), end=parse_hhmm(end_time))

    @classmethod
    def from_times(cls, day_of_week: int, start_time: time, end_time: time) -> "TimeRange":
        return cls(
            day_of_week=int(day_of_week),
            start=start_time.hour * 60 + start_time.minute,
            end=end_time.hour * 60 + end_time.minute,
        )

    @property
    def is_well_formed(self) -> bool:
        return 0 <= self.day_of_week < DAYS_PER_WEEK and self.start < self.end

    def validate(self) -> "TimeRange":
        if not 0 <= self.day_of_week < DAYS_PER_WEEK:
            raise ValidationError("dayOfWeek must be between 0 and 6", code="INVALID_DAY_OF_WEEK")
        if self.start >= self.end:
            raise ValidationError("End time must be after start time", code="INVALID_TIME_RANGE")
        return self

    def overlaps(self, other: "TimeRange") -> bool:
        return self.day_of_week == other.day_of_week and self.start < other.end and other.start < self.end

    @property
    def duration_hours(self) -> float:
        return (self.end - self.start) / 60

    @property
    def start_label(self) -> str:
        return format_minutes(self.start)

    @property
    def end_label(self) -> str:
        return format_minutes(self.end)

    def label(self) -> str:
        return format_time_range(self.start_label, self.end_label)


def format_time_range(start_time: str, end_time: str) -> str:
    return f"{start_time} - {end_time}"
