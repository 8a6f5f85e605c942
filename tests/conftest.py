from __future__ import annotations

from pathlib import Path
import sys

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from expense_tracker.db import ExpenseStore


@pytest.fixture
def store(tmp_path) -> ExpenseStore:
    """A fresh store backed by a temporary SQLite file."""
    expense_store = ExpenseStore(tmp_path / "expenses.db")
    expense_store.init_db()
    return expense_store
