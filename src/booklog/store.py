"""In-memory record store.

RecordStore is the capability interface the rest of the package codes
against; HashRecordStore is the dict-backed implementation.

    store = HashRecordStore()
    store.insert(Record("B1", "Dune", author="Herbert", fetched_at=1000))
    store.query_by_title_contains("dun")      # -> [Record(id='B1', ...)]

Point operations are O(1); the two query methods are linear scans. The store
does no locking of its own: callers serialise writers.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Iterator

    from booklog.models import Record


class RecordStore(Protocol):
    def insert(self, record: Record) -> None: ...
    def update(self, record: Record) -> bool: ...
    def delete(self, record_id: str) -> bool: ...
    def get(self, record_id: str) -> Record | None: ...
    def query_by_time_range(self, start: int, end: int) -> list[Record]: ...
    def query_by_title_contains(self, keyword: str) -> list[Record]: ...
    def size(self) -> int: ...
    def is_empty(self) -> bool: ...
    def clear(self) -> None: ...
    def get_all(self) -> list[Record]: ...


def _check(record: Record | None) -> str:
    if record is None:
        msg = "Record cannot be None"
        raise ValueError(msg)
    if not record.id or not record.id.strip():
        msg = "Record id cannot be empty"
        raise ValueError(msg)
    return record.id.strip()


class HashRecordStore:
    """Hash-indexed RecordStore keyed by record id."""

    def __init__(self) -> None:
        self._records: dict[str, Record] = {}

    # ------------------------------------------------------------------
    # Point operations
    # ------------------------------------------------------------------

    def insert(self, record: Record) -> None:
        """Add record, replacing any existing record with the same id."""
        self._records[_check(record)] = record

    def update(self, record: Record) -> bool:
        """Replace an existing record. False if the id is not stored."""
        key = _check(record)
        if key not in self._records:
            return False
        self._records[key] = record
        return True

    def delete(self, record_id: str) -> bool:
        if not record_id or not record_id.strip():
            return False
        return self._records.pop(record_id.strip(), None) is not None

    def get(self, record_id: str) -> Record | None:
        if not record_id or not record_id.strip():
            return None
        return self._records.get(record_id.strip())

    def contains(self, record_id: str) -> bool:
        return self.get(record_id) is not None

    # ------------------------------------------------------------------
    # Scans
    # ------------------------------------------------------------------

    def query_by_time_range(self, start: int, end: int) -> list[Record]:
        """Records with start <= fetched_at <= end, most recent first."""
        hits = [r for r in self._records.values() if start <= r.fetched_at <= end]
        hits.sort(key=lambda r: r.fetched_at, reverse=True)
        return hits

    def query_by_title_contains(self, keyword: str) -> list[Record]:
        """Case-insensitive substring match on title. Blank keyword matches nothing."""
        if not keyword or not keyword.strip():
            return []
        needle = keyword.strip().lower()
        return [r for r in self._records.values() if needle in r.title.lower()]

    # ------------------------------------------------------------------
    # Whole-table
    # ------------------------------------------------------------------

    def size(self) -> int:
        return len(self._records)

    def is_empty(self) -> bool:
        return not self._records

    def clear(self) -> None:
        self._records.clear()

    def get_all(self) -> list[Record]:
        """Snapshot of every stored record (later mutations of the store don't show up)."""
        return list(self._records.values())

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return isinstance(record_id, str) and self.contains(record_id)

    def __iter__(self) -> Iterator[Record]:
        return iter(self.get_all())
