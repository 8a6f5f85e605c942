"""Configuration management for the expense tracker engine.

This module centralizes filesystem locations together with their
environment variable overrides.  Engine behaviour (budget limit,
summing mode, currency) lives in :mod:`expense_tracker.settings_storage`.
"""

from __future__ import annotations

import os
from pathlib import Path

# Base project root - assumes this file is in expense_tracker/
_PROJECT_ROOT = Path(__file__).parent.parent.resolve()

# Data directory
DATA_DIR = Path(os.getenv("EXPENSE_TRACKER_DATA_DIR", _PROJECT_ROOT / "data"))

# Database
DB_PATH = Path(
    os.getenv("EXPENSE_TRACKER_DB_PATH", DATA_DIR / "expenses.db")
).resolve()

# Persisted engine settings
SETTINGS_PATH = Path(
    os.getenv("EXPENSE_TRACKER_SETTINGS_PATH", DATA_DIR / "settings.json")
).resolve()

# History paging step
DEFAULT_PAGE_SIZE = 15

# Search text starting with this marker asks for category suggestions
TAG_SEARCH_MARKER = "#"


def ensure_data_directories() -> None:
    """Create the data directory and the parents of the DB/settings files."""
    for directory in {DATA_DIR, DB_PATH.parent, SETTINGS_PATH.parent}:
        directory.mkdir(parents=True, exist_ok=True)
