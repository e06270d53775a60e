"""Tests for the page <-> selection reconciler."""

from __future__ import annotations

import pytest

from collection.records import FetchedPage, Record
from selection.page_view import PageViewState
from selection.reconciler import Reconciler, derive_current_selection
from selection.selection_set import SelectionSet

from tests.fakes import make_records


def _page(records, *, page_index: int = 1, page_size: int = 12, total: int = 30) -> PageViewState:
    return PageViewState.from_fetch(page_index, page_size, FetchedPage.of(records, total))


def test_derive_preserves_page_order() -> None:
    records = make_records(5)
    selection = SelectionSet([records[3], records[0]])

    derived = derive_current_selection(_page(records), selection)

    assert [record.id for record in derived] == [1, 4]


def test_toggle_is_idempotent() -> None:
    records = make_records(4)
    page = _page(records)
    selection = SelectionSet()
    reconciler = Reconciler(selection)

    reconciler.apply_user_toggle(page, records[:2])
    before = selection.ids()
    reconciler.apply_user_toggle(page, records[:2])

    assert selection.ids() == before


def test_toggle_is_scoped_to_the_page() -> None:
    a, b, c = make_records(3)
    x = Record(id="x", fields={"title": "elsewhere"})
    selection = SelectionSet([a, x])
    reconciler = Reconciler(selection)

    view = reconciler.apply_user_toggle(_page([a, b, c]), [b])

    assert set(selection.ids()) == {b.id, "x"}
    assert [record.id for record in view] == [b.id]


def test_toggle_by_ids_resolves_against_page() -> None:
    records = make_records(3)
    page = _page(records)
    selection = SelectionSet()

    view = Reconciler(selection).apply_user_toggle_ids(page, [3, 1, 3])

    assert [record.id for record in view] == [1, 3]
    assert selection.ids() == [3, 1]


def test_toggle_by_ids_rejects_unknown_ids() -> None:
    page = _page(make_records(3))
    selection = SelectionSet()

    with pytest.raises(ValueError):
        Reconciler(selection).apply_user_toggle_ids(page, [1, 42])
    assert selection.size() == 0


def test_page_view_state_rejects_oversized_pages() -> None:
    with pytest.raises(ValueError):
        _page(make_records(5), page_size=4)


def test_page_view_state_paging_helpers() -> None:
    page = _page(make_records(12, start=13), page_index=2, page_size=12, total=30)

    assert page.page_count == 3
    assert page.first_row_number == 13
    assert page.has_previous
    assert page.has_next
    assert PageViewState.empty(12).page_count == 0
