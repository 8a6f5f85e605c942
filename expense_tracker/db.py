from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import pandas as pd

from .config import DB_PATH
from .models import Category, Expense
from .windows import DateWindow

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS categories (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL DEFAULT '',
    color TEXT,
    icon TEXT
);

CREATE TABLE IF NOT EXISTS expenses (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL DEFAULT '',
    normalized_name TEXT NOT NULL DEFAULT '',
    date TEXT NOT NULL,
    value REAL NOT NULL DEFAULT 0,
    image BLOB,
    tag_id TEXT
);

CREATE INDEX IF NOT EXISTS ix_expense_date ON expenses (date);
CREATE INDEX IF NOT EXISTS ix_expense_tag ON expenses (tag_id);
"""

EXPENSE_COLUMNS_SQL = (
    "SELECT e.id AS id, e.name AS name, e.date AS date, e.value AS value, e.image AS image, "
    "e.tag_id AS tag_id, c.id AS category_id, c.name AS category_name, c.color AS category_color, "
    "c.icon AS category_icon, e.seq AS seq "
    "FROM expenses e LEFT JOIN categories c ON c.id = e.tag_id"
)

ChangeListener = Callable[[str], None]


class SortOrder(Enum):
    DATE_DESC = "date_desc"
    DATE_ASC = "date_asc"


_ORDER_SQL = {
    SortOrder.DATE_DESC: " ORDER BY e.date DESC, e.seq DESC",
    SortOrder.DATE_ASC: " ORDER BY e.date ASC, e.seq ASC",
}


@dataclass(frozen=True)
class ExpenseQuery:
    """Predicate over expenses; every populated field is ANDed together."""

    window: Optional[DateWindow] = None
    name_contains: Optional[str] = None
    tag_id: Optional[str] = None

    def where(self) -> Tuple[str, List[Any]]:
        where: List[str] = []
        params: List[Any] = []
        if self.window is not None:
            where.append("e.date >= ?")
            params.append(to_db_date(self.window.start))
            where.append("e.date <= ?" if self.window.end_inclusive else "e.date < ?")
            params.append(to_db_date(self.window.end))
        if self.name_contains:
            where.append("instr(e.normalized_name, ?) > 0")
            params.append(normalize_name(self.name_contains))
        if self.tag_id is not None:
            where.append("e.tag_id = ?")
            params.append(self.tag_id)
        if not where:
            return "", params
        return " WHERE " + " AND ".join(where), params


def normalize_name(text: Optional[str]) -> str:
    if not text:
        return ''
    return str(text).casefold()


def to_db_date(value: datetime) -> str:
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value.isoformat(sep=' ', timespec='microseconds')


def from_db_date(value: str) -> datetime:
    return datetime.fromisoformat(value)


class ExpenseStore:
    """SQLite-backed expense and category collections.

    Every mutation notifies subscribers after it commits, so views can
    re-run their queries. Reads never write.
    """

    def __init__(self, db_path: Union[str, Path, None] = None):
        self.db_path = str(db_path if db_path is not None else DB_PATH)
        self._listeners: List[ChangeListener] = []

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def init_db(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        logger.info("Expense store ready at %s", self.db_path)

    # -- change notifications -------------------------------------------------

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Register ``listener(kind)``; returns a callable that unsubscribes."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, kind: str) -> None:
        for listener in list(self._listeners):
            listener(kind)

    # -- expenses --------------------------------------------------------------

    @staticmethod
    def _expense_params(expense: Expense) -> Tuple:
        return (
            expense.name or '',
            normalize_name(expense.name),
            to_db_date(expense.date),
            float(expense.value),
            expense.image,
            expense.tag_id,
        )

    def insert(self, expense: Expense) -> Expense:
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO expenses (name, normalized_name, date, value, image, tag_id, id) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                self._expense_params(expense) + (expense.id,),
            )
            conn.commit()
        self._notify("insert")
        return expense

    def update(self, expense: Expense) -> Expense:
        with self.connect() as conn:
            cursor = conn.execute(
                "UPDATE expenses SET name = ?, normalized_name = ?, date = ?, value = ?, image = ?, tag_id = ? "
                "WHERE id = ?",
                self._expense_params(expense) + (expense.id,),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise KeyError(expense.id)
        self._notify("update")
        return expense

    def delete(self, expense: Union[Expense, str]) -> None:
        expense_id = expense.id if isinstance(expense, Expense) else expense
        with self.connect() as conn:
            cursor = conn.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))
            conn.commit()
            if cursor.rowcount == 0:
                raise KeyError(expense_id)
        self._notify("delete")

    def delete_many(self, expenses: Iterable[Union[Expense, str]]) -> int:
        """Bulk delete; unknown ids are ignored. Returns the number removed."""
        ids = [e.id if isinstance(e, Expense) else e for e in expenses]
        if not ids:
            return 0
        with self.connect() as conn:
            before = conn.total_changes
            conn.executemany("DELETE FROM expenses WHERE id = ?", [(i,) for i in ids])
            conn.commit()
            removed = conn.total_changes - before
        if removed:
            self._notify("delete")
        return removed

    def get(self, expense_id: str) -> Optional[Expense]:
        with self.connect() as conn:
            conn.row_factory = sqlite3.Row
            row = conn.execute(EXPENSE_COLUMNS_SQL + " WHERE e.id = ?", (expense_id,)).fetchone()
        return self._row_to_expense(row) if row is not None else None

    def fetch(
        self,
        query: Optional[ExpenseQuery] = None,
        sort_by: SortOrder = SortOrder.DATE_DESC,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Expense]:
        where, params = (query or ExpenseQuery()).where()
        sql = EXPENSE_COLUMNS_SQL + where + _ORDER_SQL[sort_by]
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([int(limit), int(offset)])
        elif offset:
            sql += " LIMIT -1 OFFSET ?"
            params.append(int(offset))
        logger.debug("fetch: %s %s", sql, params)
        with self.connect() as conn:
            conn.row_factory = sqlite3.Row
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_expense(row) for row in rows]

    def count(self, query: Optional[ExpenseQuery] = None) -> int:
        where, params = (query or ExpenseQuery()).where()
        with self.connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM expenses e" + where, params).fetchone()[0]

    def fetch_frame(
        self,
        query: Optional[ExpenseQuery] = None,
        sort_by: SortOrder = SortOrder.DATE_ASC,
    ) -> pd.DataFrame:
        """Query results as a DataFrame with the analytics column layout."""
        where, params = (query or ExpenseQuery()).where()
        sql = (
            "SELECT e.id AS id, e.name AS name, e.date AS date, e.value AS value, "
            "c.id AS tag_id, c.name AS tag_name FROM expenses e LEFT JOIN categories c ON c.id = e.tag_id"
            + where + _ORDER_SQL[sort_by]
        )
        with self.connect() as conn:
            df = pd.read_sql_query(sql, conn, params=params)
        df['date'] = pd.to_datetime(df['date'])
        return df

    def _row_to_expense(self, row: sqlite3.Row) -> Expense:
        tag = None
        if row['category_id'] is not None:
            tag = Category(
                name=row['category_name'] or '',
                color=row['category_color'],
                icon=row['category_icon'],
                id=row['category_id'],
            )
        elif row['tag_id'] is not None:
            logger.warning("Expense %s references missing category %s; treating as untagged", row['id'], row['tag_id'])
        return Expense(
            name=row['name'] or '',
            date=from_db_date(row['date']),
            value=float(row['value'] or 0.0),
            image=row['image'],
            tag=tag,
            id=row['id'],
        )

    # -- categories ------------------------------------------------------------

    def insert_category(self, category: Category) -> Category:
        with self.connect() as conn:
            conn.execute(
                "INSERT INTO categories (id, name, color, icon) VALUES (?, ?, ?, ?)",
                (category.id, category.name or '', category.color, category.icon),
            )
            conn.commit()
        self._notify("insert_category")
        return category

    def update_category(self, category: Category) -> Category:
        with self.connect() as conn:
            cursor = conn.execute(
                "UPDATE categories SET name = ?, color = ?, icon = ? WHERE id = ?",
                (category.name or '', category.color, category.icon, category.id),
            )
            conn.commit()
            if cursor.rowcount == 0:
                raise KeyError(category.id)
        self._notify("update_category")
        return category

    def delete_category(self, category: Union[Category, str]) -> int:
        """Remove a category and clear it from every expense in one transaction.

        Returns the number of expenses that lost their tag.
        """
        category_id = category.id if isinstance(category, Category) else category
        with self.connect() as conn:
            try:
                cursor = conn.execute("DELETE FROM categories WHERE id = ?", (category_id,))
                if cursor.rowcount == 0:
                    raise KeyError(category_id)
                cleared = conn.execute(
                    "UPDATE expenses SET tag_id = NULL WHERE tag_id = ?", (category_id,)
                ).rowcount
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        logger.info("Deleted category %s and untagged %d expenses", category_id, cleared)
        self._notify("delete_category")
        return cleared

    def fetch_all_categories(self) -> List[Category]:
        with self.connect() as conn:
            rows = conn.execute("SELECT id, name, color, icon FROM categories ORDER BY seq ASC").fetchall()
        return [Category(name=r[1] or '', color=r[2], icon=r[3], id=r[0]) for r in rows]

    def get_category(self, category_id: str) -> Optional[Category]:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT id, name, color, icon FROM categories WHERE id = ?", (category_id,)
            ).fetchone()
        if row is None:
            return None
        return Category(name=row[1] or '', color=row[2], icon=row[3], id=row[0])

    def count_categories(self) -> int:
        with self.connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0]

    def category_usage(self) -> Dict[str, int]:
        """Number of expenses per category id."""
        with self.connect() as conn:
            rows = conn.execute(
                "SELECT tag_id, COUNT(*) FROM expenses WHERE tag_id IS NOT NULL GROUP BY tag_id"
            ).fetchall()
        return {r[0]: r[1] for r in rows}
