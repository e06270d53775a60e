"""Record and page containers shared by fetchers and the selection engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Sequence, Tuple, Union

RecordId = Union[int, str]


@dataclass(frozen=True, slots=True)
class Record:
    """One entity of the remote collection.

    Only ``id`` is meaningful to the selection engine. ``fields`` carries the
    rest of the payload (title, artist, dates, ...) so views can render it.
    """

    id: RecordId
    fields: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)

    def __post_init__(self) -> None:
        if isinstance(self.id, bool) or not isinstance(self.id, (int, str)):
            raise TypeError(f"Record id must be int or str, got {type(self.id).__name__}")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], *, id_key: str = "id") -> "Record":
        if id_key not in payload:
            raise KeyError(id_key)
        extras = {key: value for key, value in payload.items() if key != id_key}
        return cls(id=payload[id_key], fields=extras)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id}
        data.update(self.fields)
        return data


@dataclass(frozen=True, slots=True)
class FetchedPage:
    """Rows returned by one fetch plus the server's current total."""

    records: Tuple[Record, ...]
    total_records: int

    @classmethod
    def of(cls, records: Sequence[Record], total_records: int) -> "FetchedPage":
        return cls(records=tuple(records), total_records=max(0, int(total_records)))


__all__ = ["FetchedPage", "Record", "RecordId"]
