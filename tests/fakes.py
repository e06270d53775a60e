"""In-memory page fetchers for deterministic tests."""
from __future__ import annotations

from typing import Callable, Dict, List, Optional, Sequence, Tuple

from collection.fetcher import FetchError
from collection.records import FetchedPage, Record


def make_records(count: int, *, start: int = 1) -> List[Record]:
    return [
        Record(id=index, fields={"title": f"Artwork {index}", "artist_display": f"Artist {index % 7}"})
        for index in range(start, start + count)
    ]


class FakePageFetcher:
    """Serves slices of a fixed record list and records every call."""

    def __init__(
        self,
        records: Sequence[Record],
        *,
        total_records: Optional[int] = None,
        fail_on: Optional[Dict[int, int]] = None,
    ) -> None:
        self.records = list(records)
        self.total_records = total_records
        # page index -> number of calls for that page that should fail
        self.fail_on = dict(fail_on or {})
        self.calls: List[Tuple[int, int]] = []
        self.before_return: Optional[Callable[[int, int], None]] = None

    def fetch_page(self, page_index: int, page_size: int) -> FetchedPage:
        self.calls.append((page_index, page_size))
        remaining = self.fail_on.get(page_index, 0)
        if remaining:
            self.fail_on[page_index] = remaining - 1
            raise FetchError(f"simulated failure on page {page_index}", page_index=page_index)
        start = (page_index - 1) * page_size
        rows = self.records[start : start + page_size]
        if self.before_return is not None:
            hook, self.before_return = self.before_return, None
            hook(page_index, page_size)
        total = self.total_records if self.total_records is not None else len(self.records)
        return FetchedPage.of(rows, total)

    @property
    def pages_requested(self) -> List[int]:
        return [page for page, _ in self.calls]
