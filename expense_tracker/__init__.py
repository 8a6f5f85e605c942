"""Top-level package for the expense tracker engine.

The engine sits between an expense store and whatever presents the
numbers.  The primary modules are:

* ``windows`` – date windows (today, this/previous month, last 7 days)
* ``analytics`` – totals, per-day summaries and percentages
* ``ranking`` – spending per category and the most expensive category
* ``budget`` – remaining budget and over-budget state
* ``history`` – searchable, filterable, paginated expense history
* ``db`` – the SQLite-backed expense and category store

Nothing here renders anything; amounts are returned as raw numbers and
formatting is left to the caller.
"""

from . import analytics  # noqa: F401  # re-exported for convenience
from . import budget  # noqa: F401
from . import db  # noqa: F401
from . import history  # noqa: F401
from . import ranking  # noqa: F401
from . import windows  # noqa: F401
from .models import Category, Expense  # noqa: F401

__all__ = ["analytics", "budget", "db", "history", "ranking", "windows", "Category", "Expense"]
