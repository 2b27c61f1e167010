"""
Half-open date/time ranges and the overlap predicates the engine is built on.

All instants are stored timezone-aware. Calendar-day questions (busy dates,
room periods) are answered in the current local timezone.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date as date_type
from datetime import datetime, time, timedelta
from typing import Iterator

from django.utils import timezone

from .exceptions import InvalidInterval


ONE_DAY = timedelta(days=1)


def as_aware(value) -> datetime:
    """
    Coerce a date or datetime to an aware datetime.
    Dates become local midnight; naive datetimes are read as local time.
    """
    if isinstance(value, datetime):
        if timezone.is_naive(value):
            return timezone.make_aware(value, timezone.get_current_timezone())
        return value
    if isinstance(value, date_type):
        return day_start(value)
    raise InvalidInterval(f"Expected a date or datetime, got {type(value).__name__}.")


def day_start(day: date_type) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.min), timezone.get_current_timezone())


def normalize_to_day(value) -> date_type:
    """Strip the time of day, keeping the local calendar date."""
    if isinstance(value, datetime):
        if timezone.is_aware(value):
            return timezone.localtime(value).date()
        return value.date()
    return value


def overlaps(a, b) -> bool:
    """
    True iff the half-open ranges share at least one instant.
    Works on anything with ``start``/``end`` (intervals, allocation rows).
    Empty ranges never overlap anything.
    """
    if a.start >= a.end or b.start >= b.end:
        return False
    return a.start < b.end and b.start < a.end


@dataclass(frozen=True)
class Interval:
    start: datetime
    end: datetime

    def __post_init__(self):
        start = as_aware(self.start)
        end = as_aware(self.end)
        if start >= end:
            raise InvalidInterval("The end of a reservation must be after its start.")
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "end", end)

    @classmethod
    def from_dates(cls, start: date_type, end: date_type) -> "Interval":
        return cls(day_start(start), day_start(end))

    def overlaps(self, other) -> bool:
        return overlaps(self, other)

    def contains(self, other) -> bool:
        return self.start <= other.start and other.end <= self.end

    def intersection(self, other) -> "Interval | None":
        if not self.overlaps(other):
            return None
        return Interval(max(self.start, other.start), min(self.end, other.end))

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def days(self) -> Iterator[date_type]:
        """
        Every local calendar day touched by the range. A range ending exactly
        at midnight does not touch the day that starts at that midnight.
        """
        day = normalize_to_day(self.start)
        last = normalize_to_day(self.end)
        if day_start(last) >= self.end:
            last -= ONE_DAY
        while day <= last:
            yield day
            day += ONE_DAY

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"
