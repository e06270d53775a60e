"""Page-independent set of selected records keyed by record id."""
from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Sequence

from collection.records import Record, RecordId


class SelectionSet:
    """Selected records in insertion order.

    The set is the single source of truth for "is record X selected". It is
    owned by a session and shared by reference with the reconciler and the
    bulk selector.
    """

    def __init__(self, records: Iterable[Record] = ()) -> None:
        self._records: Dict[RecordId, Record] = {}
        self.upsert_many(records)

    def contains(self, record_id: RecordId) -> bool:
        return record_id in self._records

    def size(self) -> int:
        return len(self._records)

    def values(self) -> List[Record]:
        return list(self._records.values())

    def ids(self) -> List[RecordId]:
        return list(self._records.keys())

    def upsert_many(self, records: Iterable[Record]) -> int:
        """Insert or overwrite each record; return how many ids were new."""

        inserted = 0
        for record in records:
            if record.id not in self._records:
                inserted += 1
            # Keeps the first insertion position, refreshes the payload.
            self._records[record.id] = record
        return inserted

    def remove_many(self, record_ids: Iterable[RecordId]) -> int:
        removed = 0
        for record_id in record_ids:
            if self._records.pop(record_id, None) is not None:
                removed += 1
        return removed

    def replace_page_membership(
        self,
        page_ids: Iterable[RecordId],
        new_page_selection: Sequence[Record],
    ) -> None:
        """Apply a page-level toggle.

        ``page_ids`` must be exactly the ids of the page the toggle came
        from. Ids outside it are never touched, which keeps selections made
        on other pages intact.
        """

        scope = set(page_ids)
        keep = {record.id for record in new_page_selection}
        outside = keep - scope
        if outside:
            raise ValueError(f"toggle reports records that are not on the page: {sorted(map(str, outside))}")
        self.remove_many(scope - keep)
        self.upsert_many(new_page_selection)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def __iter__(self) -> Iterator[Record]:
        return iter(list(self._records.values()))

    def __repr__(self) -> str:
        return f"SelectionSet(size={len(self._records)})"


__all__ = ["SelectionSet"]
