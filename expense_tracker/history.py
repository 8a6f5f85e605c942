"""Expense history: search, category filter and infinite-scroll paging.

Pages follow a prefix-refetch contract.  Requesting page ``n`` returns
the newest ``page_size * (n + 1)`` matching expenses, so a consumer
replaces its list with each response instead of appending to it.

:class:`HistoryBrowser` holds the view state.  Every request is stamped
with a generation number; a response whose generation is older than the
latest request is dropped, so a slow page for an old search text can
never overwrite the results for the current one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .config import DEFAULT_PAGE_SIZE, TAG_SEARCH_MARKER
from .db import ExpenseQuery, ExpenseStore, SortOrder
from .models import Category, Expense
from .windows import DateWindow, start_of_day

logger = logging.getLogger(__name__)


class EmptyState(Enum):
    NO_EXPENSES = "no_expenses"
    NO_MATCHES = "no_matches"
    HAS_RESULTS = "has_results"


class LoadState(Enum):
    IDLE = "idle"
    LOADING = "loading"


@dataclass(frozen=True)
class HistoryFilter:
    search_text: str = ''
    tag: Optional[Category] = None
    window: Optional[DateWindow] = None

    @property
    def is_tag_search(self) -> bool:
        return self.search_text.startswith(TAG_SEARCH_MARKER)

    @property
    def is_active(self) -> bool:
        return bool(self.search_text) or self.tag is not None or self.window is not None

    def to_query(self) -> ExpenseQuery:
        # "#..." only drives category suggestions; it does not narrow by name
        name = None if self.is_tag_search else (self.search_text or None)
        return ExpenseQuery(
            window=self.window,
            name_contains=name,
            tag_id=self.tag.id if self.tag is not None else None,
        )


def fetch_page(
    store: ExpenseStore,
    page_index: int,
    page_size: int = DEFAULT_PAGE_SIZE,
    query: Optional[ExpenseQuery] = None,
) -> List[Expense]:
    """Items ``[0, page_size * (page_index + 1))``, newest first."""
    if page_index < 0:
        raise ValueError(f"page_index must be >= 0, got {page_index}")
    if page_size <= 0:
        raise ValueError(f"page_size must be > 0, got {page_size}")
    limit = page_size * (page_index + 1)
    logger.debug("fetch_page page=%d limit=%d query=%s", page_index, limit, query)
    return store.fetch(query, sort_by=SortOrder.DATE_DESC, limit=limit)


def search(store: ExpenseStore, text: str, tag: Optional[Category] = None) -> List[Expense]:
    """All expenses whose name contains ``text`` (case-insensitive), newest first."""
    return store.fetch(HistoryFilter(search_text=text or '', tag=tag).to_query(), sort_by=SortOrder.DATE_DESC)


def tag_suggestions(text: str, categories: Iterable[Category]) -> List[Category]:
    """Categories offered while the search text starts with ``#``."""
    if not text or not text.startswith(TAG_SEARCH_MARKER):
        return []
    needle = text[len(TAG_SEARCH_MARKER):].strip().casefold()
    return [c for c in categories if needle in (c.name or '').casefold()]


def group_by_day(expenses: Sequence[Expense]) -> Dict[datetime, List[Expense]]:
    """Section the history by day; newest day first, expense order kept."""
    groups: Dict[datetime, List[Expense]] = {}
    for expense in expenses:
        groups.setdefault(start_of_day(expense.date), []).append(expense)
    return {day: groups[day] for day in sorted(groups, reverse=True)}


def classify_empty(results: Sequence[Expense], store_total: int) -> EmptyState:
    if store_total == 0:
        return EmptyState.NO_EXPENSES
    if not results:
        return EmptyState.NO_MATCHES
    return EmptyState.HAS_RESULTS


@dataclass(frozen=True)
class HistoryRequest:
    generation: int
    page_index: int
    filter: HistoryFilter


@dataclass(frozen=True)
class HistoryPage:
    generation: int
    page_index: int
    filter: HistoryFilter
    expenses: Tuple[Expense, ...] = field(default_factory=tuple)
    has_more: bool = False
    empty_state: EmptyState = EmptyState.NO_EXPENSES


class HistoryBrowser:
    """State machine behind the history list.

    ``IDLE -> LOADING(page) -> IDLE`` on mount, search text change,
    category filter change, store change and "load more".
    """

    def __init__(self, store: ExpenseStore, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {page_size}")
        self.store = store
        self.page_size = page_size
        self.filter = HistoryFilter()
        self.page_index = 0
        self.state = LoadState.IDLE
        self.expenses: List[Expense] = []
        self.has_more = False
        self.empty_state = EmptyState.NO_EXPENSES
        self._generation = 0
        self._unsubscribe: Optional[Callable[[], None]] = None

    # -- lifecycle -----------------------------------------------------------

    def mount(self) -> HistoryPage:
        """Load the first page and follow store changes until :meth:`unmount`."""
        if self._unsubscribe is None:
            self._unsubscribe = self.store.subscribe(self.notify_changed)
        return self._reload(0)

    def unmount(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    # -- triggers --------------------------------------------------------------

    def set_search_text(self, text: str) -> Optional[HistoryPage]:
        text = text or ''
        if text == self.filter.search_text:
            return None
        self.filter = replace(self.filter, search_text=text)
        return self._reload(0)

    def set_filter_tag(self, tag: Optional[Category]) -> Optional[HistoryPage]:
        current = self.filter.tag.id if self.filter.tag is not None else None
        new = tag.id if tag is not None else None
        if current == new:
            return None
        self.filter = replace(self.filter, tag=tag)
        return self._reload(0)

    def set_window(self, window: Optional[DateWindow]) -> Optional[HistoryPage]:
        if window == self.filter.window:
            return None
        self.filter = replace(self.filter, window=window)
        return self._reload(0)

    def load_more(self) -> Optional[HistoryPage]:
        if not self.has_more:
            return None
        return self._reload(self.page_index + 1)

    def should_load_more(self, item: Expense) -> bool:
        """True when ``item`` is the last loaded row and more rows exist."""
        return self.has_more and bool(self.expenses) and self.expenses[-1].id == item.id

    def notify_changed(self, kind: Optional[str] = None) -> HistoryPage:
        """Re-run the current prefix after the store changed."""
        logger.debug("store changed (%s); refreshing history page %d", kind, self.page_index)
        return self._reload(self.page_index)

    @property
    def suggestions(self) -> List[Category]:
        if not self.filter.is_tag_search:
            return []
        return tag_suggestions(self.filter.search_text, self.store.fetch_all_categories())

    @property
    def sections(self) -> Dict[datetime, List[Expense]]:
        return group_by_day(self.expenses)

    # -- request / response ----------------------------------------------------

    def request(self, page_index: int) -> HistoryRequest:
        """Start a load; any response for an earlier request becomes stale."""
        self._generation += 1
        self.state = LoadState.LOADING
        return HistoryRequest(self._generation, page_index, self.filter)

    def execute(self, request: HistoryRequest) -> HistoryPage:
        query = request.filter.to_query()
        rows = fetch_page(self.store, request.page_index, self.page_size, query)
        matching = self.store.count(query)
        store_total = matching if not request.filter.is_active else self.store.count()
        return HistoryPage(
            generation=request.generation,
            page_index=request.page_index,
            filter=request.filter,
            expenses=tuple(rows),
            has_more=matching > len(rows),
            empty_state=classify_empty(rows, store_total),
        )

    def apply(self, page: HistoryPage) -> bool:
        """Install ``page`` unless a newer request has been made since."""
        if page.generation != self._generation:
            logger.warning(
                "Discarding stale history page %d (generation %d, current %d)",
                page.page_index, page.generation, self._generation,
            )
            return False
        self.expenses = list(page.expenses)
        self.page_index = page.page_index
        self.has_more = page.has_more
        self.empty_state = page.empty_state
        self.state = LoadState.IDLE
        return True

    def _reload(self, page_index: int) -> HistoryPage:
        page = self.execute(self.request(page_index))
        self.apply(page)
        return page
