"""Error kinds raised by the selection engine."""
from __future__ import annotations

from typing import Optional

from collection.fetcher import FetchError


class InvalidTarget(ValueError):
    """Bulk-select target is not a finite whole number."""


class StaleResponseDiscarded(RuntimeError):
    """A page response arrived after a newer page request superseded it."""

    def __init__(self, token: int, latest: int) -> None:
        super().__init__(f"response for request {token} superseded by request {latest}")
        self.token = token
        self.latest = latest


class BulkSelectAborted(FetchError):
    """A page fetch failed part way through a bulk select walk.

    ``added`` is the number of selections that were committed before the
    failure; it depends on the configured commit policy.
    """

    def __init__(
        self,
        cause: FetchError,
        *,
        added: int,
        pages_scanned: int,
        records_scanned: int,
    ) -> None:
        super().__init__(
            f"bulk select aborted after {pages_scanned} page(s), {added} added: {cause}",
            page_index=cause.page_index,
            status_code=cause.status_code,
        )
        self.cause: Optional[FetchError] = cause
        self.added = added
        self.pages_scanned = pages_scanned
        self.records_scanned = records_scanned


__all__ = ["BulkSelectAborted", "FetchError", "InvalidTarget", "StaleResponseDiscarded"]
