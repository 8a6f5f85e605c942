"""Record types shared by the store, the aggregations and the history views."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


def new_id() -> str:
    return str(uuid.uuid4()).upper()


@dataclass
class Category:
    """A user-defined label. An empty ``name`` is still a real category."""

    name: str
    color: str = "#fc0000"
    icon: str = "tag.fill"
    id: str = field(default_factory=new_id)


@dataclass
class Expense:
    """One spending event.

    ``tag`` is resolved by the store from the persisted ``tag_id``; a
    reference to a category that no longer exists is read back as ``None``.
    """

    name: str
    date: datetime
    value: float
    image: Optional[bytes] = None
    tag: Optional[Category] = None
    id: str = field(default_factory=new_id)

    @property
    def tag_id(self) -> Optional[str]:
        return self.tag.id if self.tag is not None else None


class ValidationIssue(Enum):
    AMOUNT_NOT_POSITIVE = "amount_not_positive"
    DATE_IN_FUTURE = "date_in_future"
    NAME_IS_EMPTY = "name_is_empty"


class ExpenseValidationError(ValueError):
    def __init__(self, issues: List[ValidationIssue]):
        self.issues = list(issues)
        super().__init__(", ".join(issue.value for issue in self.issues))


def validate_expense(
    name: str,
    date: datetime,
    value: float,
    now: Optional[datetime] = None,
    require_name: bool = True,
    raise_on_error: bool = False,
) -> List[ValidationIssue]:
    """Entry-point checks run by callers before inserting or editing.

    The store and the aggregations accept anything; this is where the
    amount/date/name business rules live. Checks run in the order the
    entry form reports them: amount, date, name.
    """
    now = now or datetime.now()
    issues: List[ValidationIssue] = []
    if value <= 0:
        issues.append(ValidationIssue.AMOUNT_NOT_POSITIVE)
    if date > now:
        issues.append(ValidationIssue.DATE_IN_FUTURE)
    if require_name and not (name or "").strip():
        issues.append(ValidationIssue.NAME_IS_EMPTY)
    if issues and raise_on_error:
        raise ExpenseValidationError(issues)
    return issues


def quick_expense(name: Optional[str], amount: Optional[float], now: Optional[datetime] = None) -> Expense:
    """Build an expense the way the quick-add shortcut does: dated now, blanks allowed."""
    return Expense(name=name or "", date=now or datetime.now(), value=amount or 0.0)
