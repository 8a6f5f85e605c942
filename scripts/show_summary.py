#!/usr/bin/env python3
"""Print the dashboard numbers for the configured expense database."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from expense_tracker import budget, ranking
from expense_tracker.config import ensure_data_directories
from expense_tracker.analytics import ExpenseAnalytics
from expense_tracker.db import ExpenseStore
from expense_tracker.settings_storage import load_settings


def main(db_path: str | None = None, top: int = 5) -> None:
    if db_path is None:
        ensure_data_directories()
    store = ExpenseStore(db_path)
    store.init_db()
    settings = load_settings()
    expenses = store.fetch()
    if not expenses:
        print("No expenses recorded yet.")
        return

    analytics = ExpenseAnalytics(expenses)
    print(f"Expenses recorded: {len(expenses)}")
    print(f"Today:          {analytics.today_total():,.2f} {settings.currency_code}")
    print(f"This month:     {analytics.current_month_total():,.2f} {settings.currency_code}")
    print(f"Previous month: {analytics.previous_month_total():,.2f} {settings.currency_code}")

    status = budget.evaluate_budget(expenses, settings)
    period = budget.BudgetPeriod.from_settings(settings).value
    print(f"\nBudget ({period}): {status.limit:,.2f}, spent {status.spent:,.2f}, remaining {status.balance:,.2f}")
    if status.is_over_budget:
        print("Over budget!")

    print("\nLast 7 days:")
    for bucket in analytics.weekly_series():
        print(f"  {bucket.day:%Y-%m-%d}  {bucket.total:,.2f}")

    breakdown = ranking.category_totals(expenses, store.fetch_all_categories())
    if breakdown.empty:
        print("\nNo tagged expenses.")
        return
    print("\nTop categories:")
    print(breakdown.head(top)[['tag_name', 'total', 'count', 'share']].to_string(index=False))


if __name__ == '__main__':
    parser = argparse.ArgumentParser(description='Show expense totals, budget state and top categories.')
    parser.add_argument('--db', default=None, help='Path to the expense database')
    parser.add_argument('--top', type=int, default=5, help='How many categories to show')
    parser.add_argument('--verbose', action='store_true', help='Enable debug logging')
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)
    main(db_path=args.db, top=args.top)
