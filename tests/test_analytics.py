from copy import deepcopy
from datetime import datetime, timedelta, timezone

import pandas as pd

from expense_tracker import analytics, windows
from expense_tracker.analytics import ExpenseAnalytics, percent_of_total
from expense_tracker.models import Category, Expense
from expense_tracker.settings_storage import EngineSettings

NOW = datetime(2026, 3, 15, 14, 30)


def _today_and_yesterday():
    return [
        Expense(name='Coffee', date=datetime(2026, 3, 15, 8, 5), value=10.00),
        Expense(name='Bus', date=datetime(2026, 3, 15, 9, 40), value=5.50),
        Expense(name='Free sample', date=datetime(2026, 3, 15, 12, 0), value=0),
        Expense(name='Groceries', date=datetime(2026, 3, 14, 18, 0), value=100.00),
    ]


def _one_per_day(days_back: int):
    return [
        Expense(name=f'Day {i}', date=datetime(2026, 3, 15, 12, 0) - timedelta(days=i), value=float(i))
        for i in range(1, days_back + 1)
    ]


def test_today_total_excludes_yesterday():
    expenses = _today_and_yesterday()
    today_only = analytics.filter_window(expenses, windows.today(NOW))
    assert analytics.total(today_only) == 15.50
    assert ExpenseAnalytics(expenses, now=NOW).today_total() == 15.50


def test_total_of_empty_set_is_zero():
    assert analytics.total([]) == 0
    assert ExpenseAnalytics([], now=NOW).current_month_total() == 0


def test_total_sums_negative_values_as_is():
    expenses = [
        Expense(name='Refund', date=NOW, value=-20.0),
        Expense(name='Lunch', date=NOW, value=30.0),
    ]
    assert analytics.total(expenses) == 10.0


def test_summarize_by_day_merges_same_day_and_sorts_ascending():
    expenses = _today_and_yesterday()
    buckets = analytics.summarize_by_day(expenses)
    assert [b.day for b in buckets] == [datetime(2026, 3, 14), datetime(2026, 3, 15)]
    assert buckets[0].total == 100.0
    assert buckets[1].total == 15.5
    assert sum(b.total for b in buckets) == analytics.total(expenses)


def test_summarize_by_day_buckets_come_from_expense_days():
    expenses = _one_per_day(4)
    buckets = analytics.summarize_by_day(expenses)
    expense_days = {windows.start_of_day(e.date) for e in expenses}
    assert all(b.day in expense_days for b in buckets)
    assert all(a.day < b.day for a, b in zip(buckets, buckets[1:]))


def test_last_7_days_window_gives_seven_buckets():
    expenses = _one_per_day(10)
    in_window = analytics.filter_window(expenses, windows.last_7_days(NOW))
    assert len(analytics.summarize_by_day(in_window)) == 7


def test_weekly_series_is_dense():
    expenses = _one_per_day(10)
    series = ExpenseAnalytics(expenses, now=NOW).weekly_series()
    assert len(series) == 7
    assert series[-1].day == datetime(2026, 3, 15)
    assert series[-1].total == 0.0
    assert series[0].day == datetime(2026, 3, 9)
    assert series[0].total == 6.0


def test_dense_daily_series_fills_missing_days_with_zero():
    days = [datetime(2026, 3, 1), datetime(2026, 3, 2), datetime(2026, 3, 3)]
    expenses = [Expense(name='x', date=datetime(2026, 3, 2, 10), value=7.0)]
    series = analytics.dense_daily_series(expenses, days)
    assert [b.total for b in series] == [0.0, 7.0, 0.0]
    assert [b.total for b in analytics.dense_daily_series([], days)] == [0.0, 0.0, 0.0]


def test_percent_of_total():
    assert percent_of_total(5, 0) == 0
    assert percent_of_total(0, 0) == 0
    assert percent_of_total(1, 3) == 0.33
    assert percent_of_total(1, 8) == 0.13
    assert percent_of_total(40, 40) == 1.0


def test_aggregation_does_not_mutate_input():
    tag = Category(name='Food')
    expenses = _today_and_yesterday()
    expenses[0].tag = tag
    before = deepcopy(expenses)
    ExpenseAnalytics(expenses, now=NOW).summarize_by_day()
    analytics.total(expenses)
    assert expenses == before


def test_month_comparison_and_period_total():
    expenses = [
        Expense(name='Rent', date=datetime(2026, 2, 1, 9), value=1500.0),
        Expense(name='Lunch', date=datetime(2026, 3, 2, 12), value=20.0),
        Expense(name='Dinner', date=datetime(2026, 3, 15, 19), value=35.0),
    ]
    stats = ExpenseAnalytics(expenses, now=NOW)
    comparison = stats.month_comparison()
    assert comparison['previous_month'] == 1500.0
    assert comparison['current_month'] == 55.0
    assert comparison['has_data']
    assert stats.period_total(EngineSettings(is_summing_daily=True)) == 35.0
    assert stats.period_total(EngineSettings(is_summing_daily=False)) == 55.0


def test_month_comparison_without_data():
    assert not ExpenseAnalytics([], now=NOW).month_comparison()['has_data']


def test_average_expense():
    assert analytics.average_expense([]) == 0.0
    expenses = [Expense(name='a', date=NOW, value=10.0), Expense(name='b', date=NOW, value=20.0)]
    assert analytics.average_expense(expenses) == 15.0


def test_accepts_dataframe_input():
    df = pd.DataFrame([
        {'id': '1', 'name': 'Coffee', 'date': '2026-03-15 08:00:00', 'value': 4.5},
        {'id': '2', 'name': 'Tea', 'date': '2026-03-15 09:00:00', 'value': 3.0},
    ])
    assert analytics.total(df) == 7.5
    assert len(analytics.summarize_by_day(df)) == 1


def test_range_series_uses_inclusive_bounds():
    expenses = _one_per_day(5)
    series = ExpenseAnalytics(expenses, now=NOW).range_series(
        datetime(2026, 3, 11, 12, 0), datetime(2026, 3, 13, 12, 0)
    )
    assert [b.day for b in series] == [datetime(2026, 3, 11), datetime(2026, 3, 12), datetime(2026, 3, 13)]


def test_timezone_aware_dates_are_read_as_local_time():
    # .astimezone() attaches the local offset, so the wall-clock time is unchanged
    aware = Expense(name='Coffee', date=datetime(2026, 3, 15, 10, 0).astimezone(), value=5.0)
    yesterday = Expense(name='Taxi', date=datetime(2026, 3, 14, 10, 0).astimezone(), value=7.0)
    stats = ExpenseAnalytics([aware, yesterday], now=NOW)
    assert stats.today_total() == 5.0
    assert stats.current_month_total() == 12.0
    assert [b.day for b in stats.summarize_by_day()] == [datetime(2026, 3, 14), datetime(2026, 3, 15)]


def test_mixed_naive_and_aware_dates():
    expenses = [
        Expense(name='Naive', date=datetime(2026, 3, 15, 9, 0), value=2.0),
        Expense(name='Aware', date=datetime(2026, 3, 15, 11, 0).astimezone(), value=3.0),
        Expense(name='UTC', date=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc), value=4.0),
    ]
    assert analytics.total(expenses) == 9.0
    assert ExpenseAnalytics(expenses, now=NOW).today_total() == 5.0


def test_aware_window_bounds_are_accepted():
    window = windows.between(datetime(2026, 3, 15).astimezone(), datetime(2026, 3, 15, 23, 59).astimezone())
    assert analytics.total(analytics.filter_window(_today_and_yesterday(), window)) == 15.50


def test_malformed_values_still_produce_a_number():
    df = pd.DataFrame([
        {'id': '1', 'name': 'Text', 'date': '2026-03-15 08:00:00', 'value': 'abc'},
        {'id': '2', 'name': 'Missing', 'date': '2026-03-15 09:00:00', 'value': None},
        {'id': '3', 'name': 'NaN', 'date': '2026-03-15 10:00:00', 'value': float('nan')},
        {'id': '4', 'name': 'Fine', 'date': '2026-03-15 11:00:00', 'value': 6.0},
    ])
    assert analytics.total(df) == 6.0
    assert ExpenseAnalytics(df, now=NOW).today_total() == 6.0


def test_infinite_value_sums_to_infinity():
    expenses = [
        Expense(name='Broken', date=NOW, value=float('inf')),
        Expense(name='Fine', date=NOW, value=1.0),
    ]
    assert analytics.total(expenses) == float('inf')
    assert analytics.summarize_by_day(expenses)[0].total == float('inf')


def test_unparseable_dates_fall_outside_every_window():
    df = pd.DataFrame([
        {'id': '1', 'name': 'Garbage', 'date': 'not a date', 'value': 50.0},
        {'id': '2', 'name': 'Empty', 'date': None, 'value': 20.0},
        {'id': '3', 'name': 'Fine', 'date': '2026-03-15 11:00:00', 'value': 6.0},
    ])
    stats = ExpenseAnalytics(df, now=NOW)
    assert stats.today_total() == 6.0
    assert stats.current_month_total() == 6.0
    assert [b.total for b in analytics.summarize_by_day(df)] == [6.0]


def test_percent_of_total_with_non_finite_inputs():
    assert percent_of_total(float('inf'), 1.0) == 0.0
    assert percent_of_total(float('nan'), 1.0) == 0.0
    assert percent_of_total(1.0, float('nan')) == 0.0
    assert percent_of_total(float('inf'), float('inf')) == 0.0
    assert percent_of_total(5.0, float('inf')) == 0.0
