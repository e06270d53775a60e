"""Contract consumed by the selection engine to read one page at a time."""
from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from .records import FetchedPage


class FetchError(RuntimeError):
    """Transport or parse failure while fetching a page."""

    def __init__(
        self,
        message: str,
        *,
        page_index: Optional[int] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.page_index = page_index
        self.status_code = status_code


@runtime_checkable
class PageFetcher(Protocol):
    """Anything able to return page ``page_index`` (1-based) of ``page_size`` rows."""

    def fetch_page(self, page_index: int, page_size: int) -> FetchedPage:
        ...


__all__ = ["FetchError", "PageFetcher"]
