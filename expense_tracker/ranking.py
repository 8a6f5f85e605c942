"""Spending by category.

Totals are keyed by category id, never by name, because two categories
may share a name.  Expenses without a category are left out entirely.
Ties on the total go to the lowest category id so repeated calls agree.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional

import pandas as pd

from .analytics import ExpenseData, expenses_to_frame, percent_of_total
from .models import Category, Expense

logger = logging.getLogger(__name__)

BREAKDOWN_COLUMNS = ['tag_id', 'tag_name', 'total', 'count', 'share']


def _category_lookup(expenses: ExpenseData, categories: Optional[Iterable[Category]]) -> Dict[str, Category]:
    if categories is not None:
        return {c.id: c for c in categories}
    if isinstance(expenses, pd.DataFrame):
        rows = expenses_to_frame(expenses).dropna(subset=['tag_id']).drop_duplicates('tag_id')
        return {
            row['tag_id']: Category(name=row['tag_name'] if pd.notna(row['tag_name']) else '', id=row['tag_id'])
            for _, row in rows.iterrows()
        }
    lookup: Dict[str, Category] = {}
    for expense in expenses:
        if isinstance(expense, Expense) and expense.tag is not None:
            lookup.setdefault(expense.tag.id, expense.tag)
    return lookup


def category_totals(expenses: ExpenseData, categories: Optional[Iterable[Category]] = None) -> pd.DataFrame:
    """Totals per category, highest first, ties ordered by ascending id.

    When ``categories`` is given, references to ids outside it are treated
    as untagged.
    """
    if not isinstance(expenses, pd.DataFrame):
        expenses = list(expenses)
    df = expenses_to_frame(expenses)
    lookup = _category_lookup(expenses, categories)
    tagged = df[df['tag_id'].notna()]
    dangling = ~tagged['tag_id'].isin(list(lookup))
    if dangling.any():
        logger.warning("Ignoring %d expenses tagged with unknown categories", int(dangling.sum()))
        tagged = tagged[~dangling]
    if tagged.empty:
        return pd.DataFrame(columns=BREAKDOWN_COLUMNS)

    grouped = tagged.groupby('tag_id')['value'].agg(['sum', 'count']).reset_index()
    grouped.columns = ['tag_id', 'total', 'count']
    grouped['tag_name'] = grouped['tag_id'].map(lambda tag_id: lookup[tag_id].name)
    whole = float(grouped['total'].sum())
    grouped['share'] = grouped['total'].map(lambda part: percent_of_total(part, whole))
    grouped = grouped.sort_values(['total', 'tag_id'], ascending=[False, True], kind='mergesort')
    return grouped[BREAKDOWN_COLUMNS].reset_index(drop=True)


def most_expensive_category(
    expenses: ExpenseData,
    categories: Optional[Iterable[Category]] = None,
) -> Optional[Category]:
    """The category with the highest total spend, or ``None`` if nothing is tagged."""
    if not isinstance(expenses, pd.DataFrame):
        expenses = list(expenses)
    if categories is not None:
        categories = list(categories)
    totals = category_totals(expenses, categories)
    if totals.empty:
        return None
    winner = totals.iloc[0]['tag_id']
    return _category_lookup(expenses, categories)[winner]
