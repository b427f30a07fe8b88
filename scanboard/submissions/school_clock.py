"""
School clock
Single owner of time-zone math: day windows, month windows, weekday checks

School-local dates are "YYYY-MM-DD" strings interpreted in APP_TIMEZONE.
Every returned instant is a UTC-aware datetime.
"""

import calendar
from datetime import date, datetime, time, timezone
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from scanboard.config import APP_TIMEZONE

TimeRange = Tuple[datetime, datetime]

# Inclusive upper bound, matches the millisecond precision MongoDB stores
END_OF_DAY = time(23, 59, 59, 999000)


def parse_school_date(school_date: str) -> date:
    return date.fromisoformat(school_date)


class SchoolClock:
    def __init__(self, tz_name: str = APP_TIMEZONE, now: Optional[Callable[[], datetime]] = None):
        self.tz = ZoneInfo(tz_name)
        self._now = now or (lambda: datetime.now(timezone.utc))

    def now(self) -> datetime:
        return self._now()

    def local_now(self) -> datetime:
        return self.now().astimezone(self.tz)

    def today(self) -> str:
        return self.local_now().date().isoformat()

    def _to_utc(self, day: date, at: time) -> datetime:
        return datetime.combine(day, at, tzinfo=self.tz).astimezone(timezone.utc)

    def school_day_range(self, school_date: str) -> TimeRange:
        day = parse_school_date(school_date)
        return self._to_utc(day, time.min), self._to_utc(day, END_OF_DAY)

    def is_school_day(self, school_date: str) -> bool:
        """Monday to Friday, from the calendar date alone"""
        return parse_school_date(school_date).weekday() < 5

    def _month_range(self, day: date) -> TimeRange:
        last_day = calendar.monthrange(day.year, day.month)[1]
        start = self._to_utc(day.replace(day=1), time.min)
        end = self._to_utc(day.replace(day=last_day), END_OF_DAY)
        return start, end

    def current_month_range(self) -> TimeRange:
        return self._month_range(self.local_now().date())

    def timestamp_on(self, school_date: str) -> datetime:
        """
        The given school-local date at the current local wall-clock time.
        Keeps same-day ordering while the date part stays caller-chosen.
        """
        wall = self.local_now()
        local_time = time(wall.hour, wall.minute, wall.second, (wall.microsecond // 1000) * 1000)
        return self._to_utc(parse_school_date(school_date), local_time)
