"""Page fetcher backed by the Art Institute of Chicago public artworks API."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from .fetcher import FetchError
from .records import FetchedPage, Record

LOGGER = logging.getLogger("pageselect.collection.artic")

DEFAULT_BASE_URL = "https://api.artic.edu/api/v1"
DEFAULT_FIELDS = (
    "id",
    "title",
    "place_of_origin",
    "artist_display",
    "inscriptions",
    "date_start",
    "date_end",
)
# The public API rejects larger limits.
MAX_LIMIT = 100

_RETRY_STATUSES = {429, 500, 502, 503, 504}


class ArticPageFetcher:
    """Fetch artwork pages with bounded retries on transient failures."""

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        fields: Optional[Sequence[str]] = DEFAULT_FIELDS,
        timeout: float = 15.0,
        retries: int = 2,
        backoff_s: float = 0.5,
        max_page_size: int = MAX_LIMIT,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.fields = [str(name) for name in fields] if fields else []
        if self.fields and "id" not in self.fields:
            self.fields.insert(0, "id")
        self.timeout = float(timeout)
        self.retries = max(0, int(retries))
        self.backoff_s = max(0.0, float(backoff_s))
        self.max_page_size = max(1, min(int(max_page_size), MAX_LIMIT))
        self._session = session or requests.Session()
        self._sleep = sleep

    @classmethod
    def from_settings(cls, settings: Dict[str, Any], **kwargs: Any) -> "ArticPageFetcher":
        remote = settings.get("remote") if isinstance(settings.get("remote"), dict) else {}
        return cls(
            str(remote.get("base_url") or DEFAULT_BASE_URL),
            fields=remote.get("fields") or DEFAULT_FIELDS,
            timeout=float(remote.get("timeout_s") or 15.0),
            retries=int(remote.get("retries") if remote.get("retries") is not None else 2),
            backoff_s=float(remote.get("backoff_s") if remote.get("backoff_s") is not None else 0.5),
            max_page_size=int(remote.get("max_page_size") or MAX_LIMIT),
            **kwargs,
        )

    # ------------------------------------------------------------------
    def fetch_page(self, page_index: int, page_size: int) -> FetchedPage:
        if page_index < 1:
            raise ValueError("page_index must be >= 1")
        if page_size < 1:
            raise ValueError("page_size must be > 0")
        if page_size > self.max_page_size:
            raise ValueError(f"page_size {page_size} exceeds the API limit of {self.max_page_size}")
        params: Dict[str, object] = {"page": page_index, "limit": page_size}
        if self.fields:
            params["fields"] = ",".join(self.fields)
        payload = self._get_json("/artworks", params, page_index=page_index)
        return self._parse_page(payload, page_index=page_index, page_size=page_size)

    # ------------------------------------------------------------------
    def _get_json(self, path: str, params: Dict[str, object], *, page_index: int) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        attempt = 0
        while True:
            try:
                response = self._session.get(url, params=params, timeout=self.timeout)
            except requests.RequestException as exc:
                if attempt < self.retries:
                    self._wait(attempt, f"transport error: {exc}")
                    attempt += 1
                    continue
                raise FetchError(f"request failed: {exc}", page_index=page_index) from exc
            status_code = response.status_code
            if status_code in _RETRY_STATUSES and attempt < self.retries:
                self._wait(attempt, f"HTTP {status_code}")
                attempt += 1
                continue
            if status_code >= 300:
                raise FetchError(
                    f"HTTP {status_code} for {path}",
                    page_index=page_index,
                    status_code=status_code,
                )
            try:
                payload = response.json()
            except ValueError as exc:
                raise FetchError(
                    f"invalid JSON for {path}", page_index=page_index, status_code=status_code
                ) from exc
            if not isinstance(payload, dict):
                raise FetchError(
                    f"unexpected payload type for {path}",
                    page_index=page_index,
                    status_code=status_code,
                )
            return payload

    def _wait(self, attempt: int, reason: str) -> None:
        delay = self.backoff_s * (2 ** attempt)
        LOGGER.info("Retrying artworks fetch in %.2fs (%s)", delay, reason)
        if delay > 0:
            self._sleep(delay)

    @staticmethod
    def _parse_page(payload: Dict[str, Any], *, page_index: int, page_size: int) -> FetchedPage:
        data = payload.get("data")
        pagination = payload.get("pagination")
        if not isinstance(data, list):
            raise FetchError("response has no data list", page_index=page_index)
        if not isinstance(pagination, dict):
            raise FetchError("response has no pagination block", page_index=page_index)
        try:
            total = int(pagination.get("total"))
        except (TypeError, ValueError) as exc:
            raise FetchError("pagination.total is missing or not a number", page_index=page_index) from exc
        records: List[Record] = []
        for item in data:
            if not isinstance(item, dict) or item.get("id") is None:
                raise FetchError("artwork row without an id", page_index=page_index)
            records.append(Record.from_payload(item))
        if len(records) > page_size:
            LOGGER.warning(
                "API returned %d rows for page %d (limit %d); truncating",
                len(records),
                page_index,
                page_size,
            )
            records = records[:page_size]
        return FetchedPage.of(records, total)


__all__ = ["ArticPageFetcher", "DEFAULT_BASE_URL", "DEFAULT_FIELDS", "MAX_LIMIT"]
