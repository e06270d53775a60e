"""Remote collection access: record model and page fetchers."""

from .fetcher import FetchError, PageFetcher
from .records import FetchedPage, Record

__all__ = ["FetchError", "FetchedPage", "PageFetcher", "Record"]
