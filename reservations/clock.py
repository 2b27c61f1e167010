from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from django.utils import timezone


class SystemClock:
    def now(self) -> datetime:
        return timezone.now()


@dataclass
class FixedClock:
    """
    Clock pinned to a given instant. Handy for tests and backfills.
    """

    current: datetime

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta


system_clock = SystemClock()


def resolve_clock(clock=None):
    return clock if clock is not None else system_clock
