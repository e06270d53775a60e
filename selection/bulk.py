"""Bulk "select the first N records" walk over a paged collection."""
from __future__ import annotations

import logging
import math
from contextlib import nullcontext
from dataclasses import asdict, dataclass
from typing import Any, ContextManager, Dict, List, Optional, Set

from collection.fetcher import FetchError, PageFetcher
from collection.records import Record, RecordId

from .errors import BulkSelectAborted, InvalidTarget
from .selection_set import SelectionSet

LOGGER = logging.getLogger("pageselect.selection.bulk")

COMMIT_PER_PAGE = "page"
COMMIT_PER_WALK = "walk"
COMMIT_POLICIES = (COMMIT_PER_PAGE, COMMIT_PER_WALK)


@dataclass(frozen=True, slots=True)
class BulkSelectResult:
    """Outcome of one bulk select call."""

    requested: int
    added: int
    pages_scanned: int
    records_scanned: int
    exhausted: bool
    total_records: Optional[int]

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_target(value: Any, *, max_target: Optional[int] = None) -> int:
    """Normalise user input for a bulk select target.

    Negative numbers become 0 (a no-op). Anything that is not a finite whole
    number is rejected.
    """

    if value is None or isinstance(value, bool):
        raise InvalidTarget(f"target must be a number, got {value!r}")
    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise InvalidTarget("target is empty")
        try:
            number = float(text)
        except ValueError as exc:
            raise InvalidTarget(f"target is not numeric: {value!r}") from exc
    elif isinstance(value, (int, float)):
        number = float(value)
    else:
        raise InvalidTarget(f"target must be a number, got {type(value).__name__}")
    if not math.isfinite(number):
        raise InvalidTarget("target must be finite")
    if not number.is_integer():
        raise InvalidTarget(f"target must be a whole number, got {value!r}")
    target = max(0, int(number))
    if max_target is not None and target > max_target:
        raise InvalidTarget(f"target {target} exceeds the limit of {max_target}")
    return target


class BulkSelector:
    """Grows a :class:`SelectionSet` by walking pages from the start.

    "First N" follows natural order: page 1 row 1, page 1 row 2, ... using
    the page size passed to :meth:`select_first`. Records already selected
    are skipped and do not count towards the target.

    ``commit_policy`` controls what survives a failed fetch: ``"page"``
    commits every completed page scan, ``"walk"`` buffers the whole walk and
    commits once at the end.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        selection_set: SelectionSet,
        *,
        commit_policy: str = COMMIT_PER_PAGE,
        lock: Optional[ContextManager[Any]] = None,
    ) -> None:
        if commit_policy not in COMMIT_POLICIES:
            raise ValueError(f"commit_policy must be one of {COMMIT_POLICIES}, got {commit_policy!r}")
        self.fetcher = fetcher
        self.selection_set = selection_set
        self.commit_policy = commit_policy
        # Guards selection set access when the owner shares it across threads.
        self._lock = lock

    def _guard(self) -> ContextManager[Any]:
        return self._lock if self._lock is not None else nullcontext()

    def select_first(self, target: int, page_size: int) -> BulkSelectResult:
        if page_size < 1:
            raise ValueError("page_size must be positive")
        if target <= 0:
            return BulkSelectResult(
                requested=max(0, target),
                added=0,
                pages_scanned=0,
                records_scanned=0,
                exhausted=False,
                total_records=None,
            )

        walked_ids: Set[RecordId] = set()
        pending: List[Record] = []
        found = 0
        committed = 0
        pages_scanned = 0
        records_scanned = 0
        rows_seen = 0
        total: Optional[int] = None
        exhausted = False
        page_index = 1

        while found < target:
            try:
                fetched = self.fetcher.fetch_page(page_index, page_size)
                if len(fetched.records) > page_size:
                    raise FetchError(
                        f"page {page_index} returned {len(fetched.records)} rows for page size {page_size}",
                        page_index=page_index,
                    )
            except FetchError as exc:
                LOGGER.warning(
                    "Bulk select stopped at page %d: %s (%d committed)", page_index, exc, committed
                )
                raise BulkSelectAborted(
                    exc,
                    added=committed,
                    pages_scanned=pages_scanned,
                    records_scanned=records_scanned,
                ) from exc
            pages_scanned += 1
            total = fetched.total_records
            rows = fetched.records
            rows_seen += len(rows)

            batch: List[Record] = []
            with self._guard():
                for record in rows:
                    records_scanned += 1
                    if record.id in walked_ids or self.selection_set.contains(record.id):
                        continue
                    walked_ids.add(record.id)
                    batch.append(record)
                    if found + len(batch) >= target:
                        break
                found += len(batch)
                if self.commit_policy == COMMIT_PER_PAGE:
                    committed += self.selection_set.upsert_many(batch)
                else:
                    pending.extend(batch)

            if not rows or len(rows) < page_size or rows_seen >= total:
                exhausted = True
                break
            page_index += 1

        if pending:
            with self._guard():
                committed += self.selection_set.upsert_many(pending)

        result = BulkSelectResult(
            requested=target,
            added=committed,
            pages_scanned=pages_scanned,
            records_scanned=records_scanned,
            exhausted=exhausted,
            total_records=total,
        )
        LOGGER.info(
            "Bulk select: %d/%d added over %d page(s)%s",
            result.added,
            target,
            pages_scanned,
            " (collection exhausted)" if exhausted else "",
        )
        return result


__all__ = [
    "BulkSelectResult",
    "BulkSelector",
    "COMMIT_PER_PAGE",
    "COMMIT_PER_WALK",
    "COMMIT_POLICIES",
    "parse_target",
]
