"""User- and admin-facing operations over the store, metadata and log.

Every mutation is applied to memory first and then logged. A failed log
write is reported by TransactionLog (warning) and does not undo the
mutation.

Rebuild and ordinary mutation must not interleave; the services themselves
do no locking, Workspace.lock in booklog.app serialises them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from booklog.models import UserRecordMeta, now_ms
from booklog.rebuild import rebuild

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from booklog.auth import Session
    from booklog.meta import UserMetaStore
    from booklog.models import Record
    from booklog.rebuild import RebuildResult
    from booklog.store import RecordStore
    from booklog.txlog import TransactionLog

logger = logging.getLogger("booklog.service")

QUERY_TIME_RANGE = "TIME_RANGE"
QUERY_TITLE = "TITLE"


class AccessDeniedError(PermissionError):
    """The current user is not allowed to do this. Raised before any side effect."""


class UserService:
    def __init__(
        self,
        store: RecordStore,
        meta: UserMetaStore,
        session: Session,
        txlog: TransactionLog,
    ) -> None:
        self.store = store
        self.meta = meta
        self.session = session
        self.txlog = txlog

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def store_search_results(self, records: Iterable[Record], query: str | None = None) -> int:
        """Insert new records and update existing ones. Returns how many were stored.

        Guests cannot store anything (returns 0). ``query`` is the online
        search that produced the records, logged as SEARCH_ONLINE.
        """
        user = self.session.user
        if user is None or not self.session.can_store_data:
            return 0
        if query is not None:
            self.txlog.log_search_online(user, query)

        stored = 0
        for record in records:
            try:
                existing = self.store.get(record.id)
                if existing is not None:
                    # keep the pre-update values for the MODIFY payload
                    before = existing.copy()
                    self.store.update(record)
                    self.txlog.log_modify(user, before, record)
                else:
                    self.store.insert(record)
                    self.txlog.log_insert(user, record)
            except ValueError as exc:
                logger.warning("error storing record %r: %s", getattr(record, "id", None), exc)
                continue
            stored += 1
        return stored

    def delete_record(self, record_id: str) -> bool:
        """Delete a record. False when nothing was deleted (guest or unknown id)."""
        user = self.session.user
        if user is None or not self.session.can_store_data:
            return False
        old = self.store.get(record_id)
        if not self.store.delete(record_id):
            return False
        self.txlog.log_delete(user, record_id.strip(), old)
        return True

    def get_record(self, record_id: str) -> Record | None:
        return self.store.get(record_id)

    def query_by_time_range(self, start: int, end: int) -> list[Record]:
        if self.session.user is not None:
            self.txlog.log_search_offline(self.session.user, QUERY_TIME_RANGE, f"from {start} to {end}")
        return self.store.query_by_time_range(start, end)

    def query_by_title(self, keyword: str) -> list[Record]:
        if self.session.user is not None:
            self.txlog.log_search_offline(self.session.user, QUERY_TITLE, keyword)
        return self.store.query_by_title_contains(keyword)

    # ------------------------------------------------------------------
    # Favorites and notes
    # ------------------------------------------------------------------

    def get_favorites(self) -> list[Record]:
        """Favorite records of the current user; ids of deleted records are dropped."""
        if not self.session.is_logged_in:
            return []
        ids = self.meta.get_favorites(self.session.username)
        return [r for r in (self.store.get(i) for i in ids) if r is not None]

    def toggle_favorite(self, record_id: str) -> bool:
        """Flip the favorite flag. Returns the new state."""
        user = self.session.user
        if user is None:
            return False
        meta = self.meta.get(user.username, record_id)
        if meta is None:
            meta = UserRecordMeta(record_id, user.username, is_favorite=True, last_updated=now_ms())
        else:
            meta.is_favorite = not meta.is_favorite
            meta.touch()
        self.meta.put(meta)
        if meta.is_favorite:
            self.txlog.log_favorite_add(user, meta.record_id)
        else:
            self.txlog.log_favorite_remove(user, meta.record_id)
        return meta.is_favorite

    def update_note(self, record_id: str, note: str) -> None:
        user = self.session.user
        if user is None:
            return
        meta = self.meta.get(user.username, record_id)
        if meta is None:
            meta = UserRecordMeta(record_id, user.username, note=note, last_updated=now_ms())
        else:
            meta.note = note or ""
            meta.touch()
        self.meta.put(meta)
        self.txlog.log_note_update(user, meta.record_id)

    def get_note(self, record_id: str) -> str:
        if not self.session.is_logged_in:
            return ""
        return self.meta.get_note(self.session.username, record_id)


@dataclass(frozen=True)
class StorageStats:
    total_records: int
    is_empty: bool
    metadata_rows: int

    def __str__(self) -> str:
        return (
            f"Total records: {self.total_records}\nStorage empty: {self.is_empty}\n"
            f"Metadata rows: {self.metadata_rows}"
        )


class AdminService:
    def __init__(
        self,
        store: RecordStore,
        meta: UserMetaStore,
        session: Session,
        log_path: Path,
    ) -> None:
        self.store = store
        self.meta = meta
        self.session = session
        self.log_path = log_path

    def _require_admin(self, what: str) -> None:
        if not self.session.is_admin:
            msg = f"Only admins can {what}"
            raise AccessDeniedError(msg)

    def read_transaction_log(self) -> str:
        self._require_admin("read the transaction log")
        if not self.log_path.exists():
            return ""
        return self.log_path.read_text(encoding="utf-8", errors="replace")

    def rebuild_storage(self) -> RebuildResult:
        """Wipe metadata and rebuild the record store from the log.

        Metadata is not in the log, so favorites and notes are lost.
        """
        self._require_admin("rebuild storage")
        if not self.log_path.exists():
            msg = f"Transaction log file not found: {self.log_path}"
            raise FileNotFoundError(msg)
        dropped = self.meta.size()
        self.meta.clear()
        if dropped:
            logger.warning("rebuild discarded %d metadata rows", dropped)
        return rebuild(self.store, self.log_path)

    def storage_stats(self) -> StorageStats:
        self._require_admin("view storage stats")
        return StorageStats(
            total_records=self.store.size(),
            is_empty=self.store.is_empty(),
            metadata_rows=self.meta.size(),
        )
