"""Date windows used to slice expenses for reports.

All boundaries are naive local datetimes.  Month arithmetic goes through
the calendar (variable month lengths, leap years) rather than fixed day
counts.  Any boundary that cannot be derived raises
:class:`CalendarComputationError`; callers decide whether the statistic
is skipped, but a window is never silently defaulted.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import List, Optional

ONE_DAY = timedelta(days=1)
ONE_SECOND = timedelta(seconds=1)


class CalendarComputationError(ValueError):
    """A day or month boundary could not be computed."""


@dataclass(frozen=True)
class DateWindow:
    """A ``[start, end]`` or ``[start, end)`` range of timestamps."""

    start: datetime
    end: datetime
    end_inclusive: bool = True
    label: str = "custom"

    def contains(self, moment: datetime) -> bool:
        if moment < self.start:
            return False
        if self.end_inclusive:
            return moment <= self.end
        return moment < self.end

    @property
    def is_empty(self) -> bool:
        if self.end_inclusive:
            return self.start > self.end
        return self.start >= self.end

    def days(self) -> List[datetime]:
        """Start-of-day of every calendar day the window touches, ascending."""
        if self.is_empty:
            return []
        last = self.end if self.end_inclusive else self.end - timedelta(microseconds=1)
        current = start_of_day(self.start)
        out: List[datetime] = []
        while current <= last:
            out.append(current)
            current = current + ONE_DAY
        return out


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now()


def start_of_day(moment: datetime) -> datetime:
    return datetime.combine(moment.date(), time.min)


def start_of_month(moment: datetime) -> datetime:
    return datetime(moment.year, moment.month, 1)


def add_days(moment: datetime, days: int) -> datetime:
    try:
        return moment + timedelta(days=days)
    except OverflowError as e:
        raise CalendarComputationError(f"Cannot shift {moment.isoformat()} by {days} days") from e


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping the day to the month end."""
    index = moment.month - 1 + months
    year = moment.year + index // 12
    month = index % 12 + 1
    if not date.min.year <= year <= date.max.year:
        raise CalendarComputationError(f"Cannot shift {moment.isoformat()} by {months} months")
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def _month_window(first: datetime, label: str) -> DateWindow:
    end = add_months(first, 1)
    try:
        end = end - ONE_SECOND
    except OverflowError as e:
        raise CalendarComputationError(f"Cannot compute end of month for {first.isoformat()}") from e
    return DateWindow(first, end, end_inclusive=True, label=label)


def today(now: Optional[datetime] = None) -> DateWindow:
    """``[start of today, start of tomorrow)``."""
    begin = start_of_day(_now(now))
    return DateWindow(begin, add_days(begin, 1), end_inclusive=False, label="today")


def current_month(now: Optional[datetime] = None) -> DateWindow:
    """First of this month through first of next month minus one second."""
    return _month_window(start_of_month(_now(now)), "current_month")


def previous_month(now: Optional[datetime] = None) -> DateWindow:
    """The calendar month before ``now``; January rolls back to December."""
    first = add_months(start_of_month(_now(now)), -1)
    return _month_window(first, "previous_month")


def last_7_days(now: Optional[datetime] = None) -> DateWindow:
    """Eight days back from the start of tomorrow, both ends inclusive.

    With timestamps strictly inside days the window covers today and the
    seven days before it, so a chart of the seven prior days is always
    fully populated.
    """
    tomorrow = add_days(start_of_day(_now(now)), 1)
    return DateWindow(add_days(tomorrow, -8), tomorrow, end_inclusive=True, label="last_7_days")


def between(start: datetime, end: datetime) -> DateWindow:
    """Caller-supplied inclusive range. ``start > end`` simply matches nothing."""
    return DateWindow(start, end, end_inclusive=True, label="custom")


def last_seven_days(now: Optional[datetime] = None) -> List[datetime]:
    """The seven chart days: six days ago through today, ascending."""
    begin = start_of_day(_now(now))
    return [add_days(begin, -offset) for offset in range(6, -1, -1)]
