"""Snapshot of the page currently materialized for display."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import FrozenSet, Tuple

from collection.records import FetchedPage, Record, RecordId


@dataclass(frozen=True, slots=True)
class PageViewState:
    """One fetched page. Replaced wholesale on every successful fetch."""

    page_index: int
    page_size: int
    records: Tuple[Record, ...]
    total_records: int

    def __post_init__(self) -> None:
        if self.page_index < 1:
            raise ValueError("page_index is 1-based")
        if self.page_size < 1:
            raise ValueError("page_size must be positive")
        if len(self.records) > self.page_size:
            raise ValueError(
                f"page holds {len(self.records)} records but page_size is {self.page_size}"
            )

    @classmethod
    def empty(cls, page_size: int) -> "PageViewState":
        return cls(page_index=1, page_size=page_size, records=(), total_records=0)

    @classmethod
    def from_fetch(cls, page_index: int, page_size: int, fetched: FetchedPage) -> "PageViewState":
        return cls(
            page_index=page_index,
            page_size=page_size,
            records=tuple(fetched.records),
            total_records=fetched.total_records,
        )

    def ids(self) -> FrozenSet[RecordId]:
        return frozenset(record.id for record in self.records)

    def find(self, record_id: RecordId) -> Record | None:
        for record in self.records:
            if record.id == record_id:
                return record
        return None

    @property
    def page_count(self) -> int:
        if self.total_records <= 0:
            return 0
        return int(math.ceil(self.total_records / self.page_size))

    @property
    def has_previous(self) -> bool:
        return self.page_index > 1

    @property
    def has_next(self) -> bool:
        return self.page_index < self.page_count

    @property
    def first_row_number(self) -> int:
        """1-based position of this page's first row in natural order."""

        return (self.page_index - 1) * self.page_size + 1


__all__ = ["PageViewState"]
