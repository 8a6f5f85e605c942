"""Budget status for the current daily or monthly period."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from . import windows
from .analytics import ExpenseData, filter_window, total
from .settings_storage import EngineSettings
from .windows import DateWindow


class BudgetPeriod(Enum):
    DAILY = "daily"
    MONTHLY = "monthly"

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> 'BudgetPeriod':
        return cls.DAILY if settings.is_summing_daily else cls.MONTHLY


@dataclass(frozen=True)
class BudgetStatus:
    limit: float
    spent: float

    @property
    def balance(self) -> float:
        """Signed ``limit - spent``; negative once the budget is blown."""
        return self.limit - self.spent

    @property
    def remaining(self) -> float:
        """Balance clamped at zero, for usage charts."""
        return max(0.0, self.balance)

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.limit

    @property
    def percentage(self) -> float:
        if self.limit <= 0:
            return 0.0
        return self.spent / self.limit


def remaining(limit: float, spent: float, clamp: bool = True) -> float:
    status = BudgetStatus(limit=limit, spent=spent)
    return status.remaining if clamp else status.balance


def period_window(period: BudgetPeriod, now: Optional[datetime] = None) -> DateWindow:
    if period is BudgetPeriod.DAILY:
        return windows.today(now)
    return windows.current_month(now)


def evaluate_budget(
    expenses: ExpenseData,
    settings: EngineSettings,
    period: Optional[BudgetPeriod] = None,
    now: Optional[datetime] = None,
) -> BudgetStatus:
    """Compare the current period's spend with ``settings.budget_limit``.

    The period defaults to the summing mode in ``settings``.
    """
    period = period or BudgetPeriod.from_settings(settings)
    spent = total(filter_window(expenses, period_window(period, now)))
    return BudgetStatus(limit=float(settings.budget_limit), spent=spent)
