"""Expense aggregation over point-in-time snapshots.

The functions here are pure projections: they copy what they are given
into a DataFrame and never touch the store or the caller's objects.
Values are summed as they are; zero or negative amounts are not filtered
out, since validation belongs to the entry point.
"""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

import numpy as np
import pandas as pd

from . import windows
from .models import Expense
from .settings_storage import EngineSettings
from .windows import DateWindow

FRAME_COLUMNS = ['id', 'name', 'date', 'value', 'tag_id', 'tag_name']

ExpenseData = Union[pd.DataFrame, Iterable[Expense]]


class DayBucket(NamedTuple):
    day: datetime
    total: float


def _local_naive(value):
    """Timestamps as local naive datetimes; unparseable strings become NaT."""
    if isinstance(value, str):
        try:
            value = pd.Timestamp(value)
        except (ValueError, TypeError, OverflowError):
            return pd.NaT
    if value is None or value is pd.NaT:
        return pd.NaT
    if isinstance(value, pd.Timestamp):
        value = value.to_pydatetime(warn=False)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def expenses_to_frame(expenses: ExpenseData) -> pd.DataFrame:
    """Normalise a list of expenses (or an existing frame) into the analytics layout."""
    if isinstance(expenses, pd.DataFrame):
        df = expenses.copy()
    else:
        df = pd.DataFrame(
            [
                {
                    'id': e.id,
                    'name': e.name,
                    'date': e.date,
                    'value': e.value,
                    'tag_id': e.tag_id,
                    'tag_name': e.tag.name if e.tag is not None else None,
                }
                for e in expenses
            ],
            columns=FRAME_COLUMNS,
        )
    for column in FRAME_COLUMNS:
        if column not in df.columns:
            df[column] = None
    df['date'] = pd.to_datetime(df['date'].astype(object).map(_local_naive), errors='coerce')
    df['value'] = pd.to_numeric(df['value'], errors='coerce').fillna(0.0).astype(float)
    df['day'] = df['date'].dt.normalize()
    return df


def filter_window(expenses: ExpenseData, window: Optional[DateWindow]) -> pd.DataFrame:
    df = expenses_to_frame(expenses)
    if window is None or df.empty:
        return df
    start = pd.Timestamp(_local_naive(window.start))
    end = pd.Timestamp(_local_naive(window.end))
    mask = df['date'] >= start
    if window.end_inclusive:
        mask &= df['date'] <= end
    else:
        mask &= df['date'] < end
    return df[mask]


def total(expenses: ExpenseData) -> float:
    """Sum of ``value``; an empty set totals 0."""
    df = expenses_to_frame(expenses)
    if df.empty:
        return 0.0
    return float(df['value'].sum())


def summarize_by_day(expenses: ExpenseData) -> List[DayBucket]:
    """One bucket per calendar day that has expenses, ascending by day."""
    df = expenses_to_frame(expenses)
    if df.empty:
        return []
    daily = df.groupby('day')['value'].sum().sort_index()
    return [DayBucket(day.to_pydatetime(), float(amount)) for day, amount in daily.items()]


def dense_daily_series(expenses: ExpenseData, days: Sequence[datetime]) -> List[DayBucket]:
    """Left-join the day summary onto ``days``; days without expenses get 0."""
    index = pd.DatetimeIndex([pd.Timestamp(d).normalize() for d in days])
    df = expenses_to_frame(expenses)
    if df.empty:
        daily = pd.Series(0.0, index=index)
    else:
        daily = df.groupby('day')['value'].sum().reindex(index, fill_value=0.0)
    return [DayBucket(day.to_pydatetime(), float(amount)) for day, amount in daily.items()]


def percent_of_total(part: float, whole: float) -> float:
    """``part / whole`` rounded half-up to two places; a zero whole gives 0."""
    if whole == 0:
        return 0.0
    try:
        ratio = Decimal(str(part)) / Decimal(str(whole))
        if not ratio.is_finite():
            return 0.0
        return float(ratio.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))
    except (InvalidOperation, ValueError):
        return 0.0


def average_expense(expenses: ExpenseData) -> float:
    """Mean value per expense, 0 for an empty set."""
    df = expenses_to_frame(expenses)
    if df.empty:
        return 0.0
    return float(np.mean(df['value'].to_numpy()))


class ExpenseAnalytics:
    """Window-based statistics over one snapshot of expenses."""

    def __init__(self, expenses: ExpenseData, now: Optional[datetime] = None):
        self.data = expenses_to_frame(expenses)
        self.now = now

    @classmethod
    def from_store(cls, store, now: Optional[datetime] = None) -> 'ExpenseAnalytics':
        return cls(store.fetch_frame(), now=now)

    def _now(self) -> datetime:
        return self.now if self.now is not None else datetime.now()

    def _filter(self, window: Optional[DateWindow]) -> pd.DataFrame:
        return filter_window(self.data, window)

    def total(self, window: Optional[DateWindow] = None) -> float:
        return total(self._filter(window))

    def summarize_by_day(self, window: Optional[DateWindow] = None) -> List[DayBucket]:
        return summarize_by_day(self._filter(window))

    def today_total(self) -> float:
        return self.total(windows.today(self._now()))

    def current_month_total(self) -> float:
        return self.total(windows.current_month(self._now()))

    def previous_month_total(self) -> float:
        return self.total(windows.previous_month(self._now()))

    def period_total(self, settings: EngineSettings) -> float:
        """Today's total when summing daily, otherwise this month's."""
        if settings.is_summing_daily:
            return self.today_total()
        return self.current_month_total()

    def month_comparison(self) -> Dict[str, object]:
        current = self.current_month_total()
        previous = self.previous_month_total()
        return {
            'previous_month': previous,
            'current_month': current,
            'has_data': previous != 0 or current != 0,
        }

    def weekly_series(self) -> List[DayBucket]:
        """Seven dense daily bars ending today."""
        now = self._now()
        return dense_daily_series(
            self._filter(windows.last_7_days(now)),
            windows.last_seven_days(now),
        )

    def weekly_average(self) -> float:
        return average_expense(self._filter(windows.last_7_days(self._now())))

    def range_series(self, start: datetime, end: datetime) -> List[DayBucket]:
        return self.summarize_by_day(windows.between(start, end))
