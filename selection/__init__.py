"""Cross-page selection engine for lazily paged remote collections."""

from .bulk import BulkSelectResult, BulkSelector, parse_target
from .errors import BulkSelectAborted, InvalidTarget, StaleResponseDiscarded
from .page_view import PageViewState
from .reconciler import Reconciler, derive_current_selection
from .selection_set import SelectionSet
from .session import PageSnapshot, SelectionSession

__all__ = [
    "BulkSelectAborted",
    "BulkSelectResult",
    "BulkSelector",
    "InvalidTarget",
    "PageSnapshot",
    "PageViewState",
    "Reconciler",
    "SelectionSession",
    "SelectionSet",
    "StaleResponseDiscarded",
    "derive_current_selection",
    "parse_target",
]
