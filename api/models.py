"""Pydantic schemas for the selection API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

RecordIdValue = Union[int, str]


class HealthResponse(BaseModel):
    """Health response summarising server readiness."""

    ok: bool = Field(True, description="Indicates the API server is reachable.")
    version: str = Field(..., description="Application version string.")
    time_utc: str = Field(..., description="Current UTC timestamp in ISO8601 format.")
    page_loaded: bool = Field(..., description="True once a page has been fetched successfully.")
    selection_count: int = Field(..., ge=0, description="Number of records currently selected.")


class RecordRow(BaseModel):
    """One row of the displayed page."""

    id: RecordIdValue = Field(..., description="Stable record identifier.")
    checked: bool = Field(..., description="True when the record is in the global selection.")
    fields: Dict[str, Any] = Field(default_factory=dict, description="Remaining record attributes.")


class PageResponse(BaseModel):
    """Current page plus the derived checked rows."""

    page_index: int = Field(..., ge=1, description="1-based index of the displayed page.")
    page_size: int = Field(..., ge=1, description="Active page size.")
    total_records: int = Field(..., ge=0, description="Collection size reported by the last fetch.")
    page_count: int = Field(..., ge=0, description="Number of pages at the active page size.")
    first_row_number: int = Field(..., ge=1, description="Natural-order position of the first row.")
    rows: List[RecordRow] = Field(default_factory=list)
    checked_ids: List[RecordIdValue] = Field(default_factory=list)
    selection_count: int = Field(..., ge=0)


class NavigateRequest(BaseModel):
    page_index: int = Field(..., ge=1, description="1-based page to display.")


class PageSizeRequest(BaseModel):
    page_size: int = Field(..., ge=1, description="New page size; reloads page 1.")


class ToggleRequest(BaseModel):
    """Checked ids for the displayed page after a user interaction."""

    checked_ids: List[RecordIdValue] = Field(default_factory=list)


class BulkSelectRequest(BaseModel):
    target: Any = Field(
        ..., description="How many unselected records to add, counted from the start of the collection."
    )


class BulkSelectResponse(BaseModel):
    requested: int = Field(..., ge=0)
    added: int = Field(..., ge=0)
    pages_scanned: int = Field(..., ge=0)
    records_scanned: int = Field(..., ge=0)
    exhausted: bool = Field(..., description="True when the walk reached the end of the collection.")
    total_records: Optional[int] = Field(None, description="Collection size reported during the walk.")
    selection_count: int = Field(..., ge=0)
    page: PageResponse


class SelectionResponse(BaseModel):
    count: int = Field(..., ge=0)
    records: List[Dict[str, Any]] = Field(default_factory=list)
