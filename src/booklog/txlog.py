"""Append-only transaction log.

One line per committed action:

    TIMESTAMP | USERNAME | ACTION | ID | TITLE | EXTRA_JSON

    1700000000000 | alice | INSERT | B1 | Dune | {"author":"Herbert","extraInfo":"","url":"","fetchedAt":1000,"fetchedByUser":"alice"}
    1700000005000 | alice | MODIFY | B1 | Dune Messiah | {"oldTitle":"Dune","newTitle":"Dune Messiah","oldAuthor":"Herbert","newAuthor":"Herbert"}
    1700000009000 | alice | DELETE | B1 | Dune Messiah | {}

Only INSERT, MODIFY and DELETE change the record store on replay; the other
actions are an audit trail (see booklog.rebuild).

Writes: every append holds the instance lock and an exclusive flock on the
file, so concurrent callers never interleave inside a line and file order is
a valid ordering of the calls.

A failed append is logged and reported by returning False. The in-memory
mutation that triggered it is NOT rolled back: the store can run ahead of the
log after an I/O error. This is a known consistency gap.
"""

from __future__ import annotations

import fcntl
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING

from booklog import payload
from booklog.models import Action, LogEntry, now_ms

if TYPE_CHECKING:
    from collections.abc import Iterator

    from booklog.models import Record, User

logger = logging.getLogger("booklog.txlog")

FIELD_COUNT = 6
_SEP = " | "


class MalformedLineError(ValueError):
    """A log line that does not have exactly six pipe-separated fields."""


# ---------------------------------------------------------------------------
# Line codec
# ---------------------------------------------------------------------------


def _clean(s: str | None) -> str:
    return (s or "").replace("|", "_").replace("\n", " ").replace("\r", " ")


def format_line(entry: LogEntry) -> str:
    """Render an entry as one log line (no trailing newline)."""
    return _SEP.join((
        str(entry.timestamp),
        _clean(entry.username),
        _clean(entry.action),
        _clean(entry.id),
        _clean(entry.title),
        payload.encode(entry.extra),
    ))


def parse_line(line: str) -> LogEntry:
    """Parse one log line. Raises MalformedLineError on a wrong field count."""
    parts = line.strip().split("|")
    if len(parts) != FIELD_COUNT:
        msg = f"expected {FIELD_COUNT} fields, got {len(parts)}"
        raise MalformedLineError(msg)
    ts_raw, username, action, record_id, title, extra = (p.strip() for p in parts)
    try:
        timestamp = int(ts_raw)
    except ValueError:
        timestamp = now_ms()
    return LogEntry(
        timestamp=timestamp,
        username=username,
        action=action,
        id=record_id,
        title=title,
        extra=payload.decode(extra),
    )


def iter_lines(path: Path) -> Iterator[tuple[int, str]]:
    """Yield (1-based line number, line without newline) from a log file.

    Undecodable bytes come back as U+FFFD, so one damaged line cannot stop a
    replay.
    """
    with path.open(encoding="utf-8", errors="replace") as f:
        for n, line in enumerate(f, start=1):
            yield n, line.rstrip("\n")


# ---------------------------------------------------------------------------
# Writer
# ---------------------------------------------------------------------------


class TransactionLog:
    """Writer for a single transaction log file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.touch(exist_ok=True)
        except OSError as exc:
            logger.warning("could not create transaction log %s: %s", self.path, exc)

    def append(self, entry: LogEntry) -> bool:
        """Append one entry. Returns False (after logging) if the write failed."""
        line = format_line(entry) + "\n"
        with self._lock:
            try:
                with self.path.open("a", encoding="utf-8") as f:
                    fcntl.flock(f, fcntl.LOCK_EX)
                    f.write(line)
            except OSError as exc:
                logger.warning(
                    "failed to write transaction log %s (%s %s): %s; operation may not be persisted",
                    self.path, entry.action, entry.id, exc,
                )
                return False
        return True

    def read_text(self) -> str:
        """Whole log as text. Raises FileNotFoundError if it does not exist."""
        return self.path.read_text(encoding="utf-8", errors="replace")

    def iter_entries(self) -> Iterator[LogEntry]:
        """Parsed entries in file order; malformed and blank lines are skipped."""
        for _, line in iter_lines(self.path):
            if not line.strip():
                continue
            try:
                yield parse_line(line)
            except MalformedLineError:
                continue

    # ------------------------------------------------------------------
    # One helper per logical action
    # ------------------------------------------------------------------

    def _log(self, user: User, action: Action, record_id: str, title: str, extra: dict[str, str | int]) -> bool:
        return self.append(LogEntry(
            timestamp=now_ms(),
            username=user.username,
            action=action.value,
            id=record_id,
            title=title,
            extra=extra,
        ))

    def log_insert(self, user: User | None, record: Record | None) -> bool:
        if user is None or record is None:
            return False
        return self._log(user, Action.INSERT, record.id, record.title, {
            "author": record.author,
            "extraInfo": record.extra_info,
            "url": record.source_url,
            "fetchedAt": record.fetched_at,
            "fetchedByUser": record.fetched_by_user,
        })

    def log_modify(self, user: User | None, old: Record | None, new: Record | None) -> bool:
        if user is None or old is None or new is None:
            return False
        return self._log(user, Action.MODIFY, new.id, new.title, {
            "oldTitle": old.title,
            "newTitle": new.title,
            "oldAuthor": old.author,
            "newAuthor": new.author,
        })

    def log_delete(self, user: User | None, record_id: str | None, old: Record | None = None) -> bool:
        if user is None or record_id is None:
            return False
        return self._log(user, Action.DELETE, record_id, old.title if old is not None else "", {})

    def log_search_online(self, user: User | None, query: str | None) -> bool:
        if user is None or query is None:
            return False
        return self._log(user, Action.SEARCH_ONLINE, "", "", {"query": query})

    def log_search_offline(self, user: User | None, query_type: str, query: str | None) -> bool:
        if user is None:
            return False
        return self._log(user, Action.SEARCH_OFFLINE, "", "", {"queryType": query_type, "query": query or ""})

    def log_favorite_add(self, user: User | None, record_id: str | None) -> bool:
        if user is None or record_id is None:
            return False
        return self._log(user, Action.FAVORITE_ADD, record_id, "", {"recordId": record_id})

    def log_favorite_remove(self, user: User | None, record_id: str | None) -> bool:
        if user is None or record_id is None:
            return False
        return self._log(user, Action.FAVORITE_REMOVE, record_id, "", {"recordId": record_id})

    def log_note_update(self, user: User | None, record_id: str | None) -> bool:
        if user is None or record_id is None:
            return False
        return self._log(user, Action.NOTE_UPDATE, record_id, "", {"recordId": record_id})
