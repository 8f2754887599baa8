"""Per-user metadata (favorites and notes), keyed by ``username#record_id``.

Metadata is not written to the transaction log, so a rebuild cannot bring it
back: AdminService.rebuild_storage() wipes it. Between CLI invocations the
table is kept in a JSON snapshot:

    {
      "version": 1,
      "rows": [
        {"record_id": "B1", "username": "bob", "is_favorite": true, "note": "", "last_updated": 1700000000000}
      ]
    }
"""

from __future__ import annotations

import fcntl
import json
import logging
from typing import TYPE_CHECKING, Any

from booklog.models import UserRecordMeta, meta_key

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger("booklog.meta")

_SNAPSHOT_VERSION = 1


class UserMetaStore:
    """Hash table of UserRecordMeta rows."""

    def __init__(self) -> None:
        self._rows: dict[str, UserRecordMeta] = {}

    def put(self, meta: UserRecordMeta) -> None:
        if meta is None:
            msg = "Metadata cannot be None"
            raise ValueError(msg)
        self._rows[meta.storage_key] = meta

    def get(self, username: str, record_id: str) -> UserRecordMeta | None:
        if username is None or record_id is None:
            return None
        return self._rows.get(meta_key(username, record_id))

    def remove(self, username: str, record_id: str) -> bool:
        if username is None or record_id is None:
            return False
        return self._rows.pop(meta_key(username, record_id), None) is not None

    def get_favorites(self, username: str) -> list[str]:
        """Record ids the user has marked favorite.

        Ids may point at deleted records; join with the record store and drop
        misses.
        """
        return [m.record_id for m in self._rows_for(username) if m.is_favorite]

    def get_user_metadata(self, username: str) -> list[UserRecordMeta]:
        return list(self._rows_for(username))

    def is_favorite(self, username: str, record_id: str) -> bool:
        meta = self.get(username, record_id)
        return meta is not None and meta.is_favorite

    def get_note(self, username: str, record_id: str) -> str:
        meta = self.get(username, record_id)
        return meta.note if meta is not None else ""

    def clear(self) -> None:
        """Drop every row. Irreversible: metadata has no other copy."""
        self._rows.clear()

    def size(self) -> int:
        return len(self._rows)

    def __len__(self) -> int:
        return len(self._rows)

    def _rows_for(self, username: str | None) -> list[UserRecordMeta]:
        if username is None:
            return []
        prefix = username.strip() + "#"
        return [m for key, m in self._rows.items() if key.startswith(prefix)]

    # ------------------------------------------------------------------
    # Snapshot file
    # ------------------------------------------------------------------

    def load_snapshot(self, path: Path) -> int:
        """Replace the table with the rows stored at path. Returns row count.

        A missing file leaves the table empty. Unreadable rows are skipped.
        """
        self._rows.clear()
        if not path.exists():
            return 0
        try:
            with path.open() as f:
                fcntl.flock(f, fcntl.LOCK_SH)
                data: dict[str, Any] = json.load(f)
        except json.JSONDecodeError:
            logger.warning("metadata snapshot %s is not valid JSON, starting empty", path)
            return 0
        for row in data.get("rows", []):
            try:
                self.put(UserRecordMeta.from_dict(row))
            except (KeyError, TypeError, ValueError):
                logger.warning("skipping bad metadata row in %s: %r", path, row)
        return len(self._rows)

    def save_snapshot(self, path: Path) -> None:
        """Atomically write the table to path under exclusive flock."""
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "version": _SNAPSHOT_VERSION,
            "rows": [m.to_dict() for m in self._rows.values()],
        }
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            json.dump(data, f, indent=2)
        tmp.replace(path)
