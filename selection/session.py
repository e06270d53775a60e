"""Session-scoped owner of the selection set and the displayed page.

Every driver (HTTP API, CLI, tests) talks to a :class:`SelectionSession`
through explicit commands. The session funnels all mutations of the
selection set and the page state through one mutex, so it can be driven from
worker threads.

Ordering: page-replacing fetches use "last request wins". Each request takes
a monotonically increasing token and a response is only applied while its
token is still the latest; superseded responses are dropped. Bulk selects
are queued behind each other.
"""
from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from collection.fetcher import FetchError, PageFetcher
from collection.records import FetchedPage, Record, RecordId

from .bulk import COMMIT_PER_PAGE, BulkSelectResult, BulkSelector, parse_target
from .errors import BulkSelectAborted, StaleResponseDiscarded
from .page_view import PageViewState
from .reconciler import Reconciler, derive_current_selection
from .selection_set import SelectionSet

LOGGER = logging.getLogger("pageselect.selection.session")

DEFAULT_PAGE_SIZE = 12


@dataclass(frozen=True, slots=True)
class PageSnapshot:
    """What a view needs to render the current page."""

    page: PageViewState
    current_selection: Tuple[Record, ...]
    selection_count: int

    @property
    def checked_ids(self) -> List[RecordId]:
        return [record.id for record in self.current_selection]

    def as_dict(self) -> Dict[str, Any]:
        checked = set(self.checked_ids)
        return {
            "page_index": self.page.page_index,
            "page_size": self.page.page_size,
            "total_records": self.page.total_records,
            "page_count": self.page.page_count,
            "first_row_number": self.page.first_row_number,
            "records": [
                dict(record.as_dict(), checked=record.id in checked) for record in self.page.records
            ],
            "checked_ids": self.checked_ids,
            "selection_count": self.selection_count,
        }


class SelectionSession:
    def __init__(
        self,
        fetcher: PageFetcher,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        commit_policy: str = COMMIT_PER_PAGE,
        max_target: Optional[int] = None,
    ) -> None:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.fetcher = fetcher
        self.selection_set = SelectionSet()
        self.max_target = max_target
        self._mutex = threading.RLock()
        self._bulk_lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._latest_token = 0
        self._page_size = page_size
        self._page = PageViewState.empty(page_size)
        self._current_selection: Tuple[Record, ...] = ()
        self._reconciler = Reconciler(self.selection_set)
        self._bulk = BulkSelector(
            fetcher,
            self.selection_set,
            commit_policy=commit_policy,
            lock=self._mutex,
        )

    @classmethod
    def from_settings(cls, fetcher: PageFetcher, settings: Dict[str, Any]) -> "SelectionSession":
        session_cfg = settings.get("session") if isinstance(settings.get("session"), dict) else {}
        bulk_cfg = settings.get("bulk_select") if isinstance(settings.get("bulk_select"), dict) else {}
        try:
            page_size = int(session_cfg.get("page_size") or DEFAULT_PAGE_SIZE)
        except (TypeError, ValueError):
            page_size = DEFAULT_PAGE_SIZE
        max_target = bulk_cfg.get("max_target")
        return cls(
            fetcher,
            page_size=max(1, page_size),
            commit_policy=str(bulk_cfg.get("commit_policy") or COMMIT_PER_PAGE),
            max_target=int(max_target) if max_target else None,
        )

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------
    @property
    def page(self) -> PageViewState:
        return self._page

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def current_selection(self) -> Tuple[Record, ...]:
        return self._current_selection

    @property
    def selection_count(self) -> int:
        return self.selection_set.size()

    @property
    def commit_policy(self) -> str:
        return self._bulk.commit_policy

    def selected_records(self) -> List[Record]:
        with self._mutex:
            return self.selection_set.values()

    def snapshot(self) -> PageSnapshot:
        with self._mutex:
            return PageSnapshot(
                page=self._page,
                current_selection=self._current_selection,
                selection_count=self.selection_set.size(),
            )

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------
    def navigate_to_page(self, page_index: int) -> PageSnapshot:
        if page_index < 1:
            raise ValueError("page_index is 1-based")
        return self._load(page_index, self._page_size)

    def change_page_size(self, page_size: int) -> PageSnapshot:
        """Switch the active page size and reload from page 1."""

        if page_size < 1:
            raise ValueError("page_size must be positive")
        return self._load(1, page_size)

    def refresh(self) -> PageSnapshot:
        return self._load(self._page.page_index, self._page_size)

    def _issue_token(self) -> int:
        with self._mutex:
            token = next(self._tokens)
            self._latest_token = token
            return token

    def _load(self, page_index: int, page_size: int, token: Optional[int] = None) -> PageSnapshot:
        if token is None:
            token = self._issue_token()
        try:
            fetched = self.fetcher.fetch_page(page_index, page_size)
            self._apply_page(token, page_index, page_size, fetched)
        except StaleResponseDiscarded as exc:
            LOGGER.debug("Dropped page %d response: %s", page_index, exc)
        except FetchError as exc:
            LOGGER.warning("Fetching page %d failed: %s", page_index, exc)
            raise
        return self.snapshot()

    def _apply_page(self, token: int, page_index: int, page_size: int, fetched: FetchedPage) -> None:
        if len(fetched.records) > page_size:
            raise FetchError(
                f"page {page_index} returned {len(fetched.records)} rows for page size {page_size}",
                page_index=page_index,
            )
        page = PageViewState.from_fetch(page_index, page_size, fetched)
        with self._mutex:
            if token != self._latest_token:
                raise StaleResponseDiscarded(token, self._latest_token)
            # Selection is derived before the page becomes visible.
            selection = derive_current_selection(page, self.selection_set)
            self._page = page
            self._page_size = page_size
            self._current_selection = selection
        LOGGER.debug(
            "Page %d loaded: %d rows, %d checked, total=%d",
            page_index,
            len(page.records),
            len(selection),
            page.total_records,
        )

    # ------------------------------------------------------------------
    # Selection commands
    # ------------------------------------------------------------------
    def apply_user_toggle(self, new_checked_subset: Sequence[Record]) -> PageSnapshot:
        with self._mutex:
            self._current_selection = self._reconciler.apply_user_toggle(self._page, new_checked_subset)
        return self.snapshot()

    def apply_user_toggle_ids(self, checked_ids: Iterable[RecordId]) -> PageSnapshot:
        with self._mutex:
            self._current_selection = self._reconciler.apply_user_toggle_ids(self._page, checked_ids)
        return self.snapshot()

    def bulk_select(self, target: Any) -> BulkSelectResult:
        """Select the first ``target`` unselected records of the collection.

        The displayed page is refetched after the walk and its checked rows
        recomputed against that response. If a page request was issued while
        the walk ran, that request owns the page and only the checked rows are
        recomputed. A failed refresh leaves the walk's result in place and
        recomputes against the page already held.
        """

        count = parse_target(target, max_target=self.max_target)
        with self._bulk_lock:
            with self._mutex:
                issued_before = self._latest_token
            try:
                result = self._bulk.select_first(count, self._page_size)
            except BulkSelectAborted as exc:
                if exc.added:
                    self._recompute()
                raise
        if result.added:
            self._refresh_after_bulk(issued_before)
        return result

    def _refresh_after_bulk(self, issued_before: int) -> None:
        with self._mutex:
            # A newer page request owns the page; it derives its own checked rows.
            if self._latest_token != issued_before or not self._page.records:
                self._recompute()
                return
            token = self._issue_token()
            page_index, page_size = self._page.page_index, self._page_size
        try:
            self._load(page_index, page_size, token)
            return
        except FetchError as exc:
            LOGGER.warning("Refresh after bulk select failed: %s", exc)
        self._recompute()

    def reset(self) -> PageSnapshot:
        with self._mutex:
            self.selection_set.clear()
            self._current_selection = ()
        LOGGER.info("Selection reset")
        return self.snapshot()

    def _recompute(self) -> None:
        with self._mutex:
            self._current_selection = derive_current_selection(self._page, self.selection_set)


__all__ = ["DEFAULT_PAGE_SIZE", "PageSnapshot", "SelectionSession"]
