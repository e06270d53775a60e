"""Keeps the current page's checked rows and the global selection in step."""
from __future__ import annotations

import logging
from typing import Iterable, List, Sequence, Tuple

from collection.records import Record, RecordId

from .page_view import PageViewState
from .selection_set import SelectionSet

LOGGER = logging.getLogger("pageselect.selection.reconciler")


def derive_current_selection(page: PageViewState, selection_set: SelectionSet) -> Tuple[Record, ...]:
    """Return the page's records that are selected, in page order."""

    return tuple(record for record in page.records if selection_set.contains(record.id))


class Reconciler:
    """Applies page-level toggles to a shared :class:`SelectionSet`."""

    def __init__(self, selection_set: SelectionSet) -> None:
        self.selection_set = selection_set

    def apply_user_toggle(self, page: PageViewState, new_checked_subset: Sequence[Record]) -> Tuple[Record, ...]:
        """Record the page's new checked rows and return the derived view."""

        self.selection_set.replace_page_membership(page.ids(), new_checked_subset)
        LOGGER.debug(
            "Page %d toggle: %d checked, %d selected overall",
            page.page_index,
            len(new_checked_subset),
            self.selection_set.size(),
        )
        return derive_current_selection(page, self.selection_set)

    def apply_user_toggle_ids(self, page: PageViewState, checked_ids: Iterable[RecordId]) -> Tuple[Record, ...]:
        """Same as :meth:`apply_user_toggle` for drivers that only send ids."""

        wanted = list(dict.fromkeys(checked_ids))
        resolved: List[Record] = []
        missing: List[RecordId] = []
        for record_id in wanted:
            record = page.find(record_id)
            if record is None:
                missing.append(record_id)
            else:
                resolved.append(record)
        if missing:
            raise ValueError(f"ids are not on page {page.page_index}: {missing}")
        return self.apply_user_toggle(page, resolved)


__all__ = ["Reconciler", "derive_current_selection"]
