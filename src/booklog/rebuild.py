"""Rebuild the record store by replaying the transaction log from the start.

The log is the source of truth; the store is derived from it and can be
thrown away and rebuilt at any time:

    result = rebuild(store, Path(".booklog/transactions.log"))
    print(result.summary())

rebuild() clears the store first, unconditionally. Confirming that the caller
really wants that (admin check, prompts) happens before it is called.

Replay is best-effort: a bad line is counted in error_count and skipped, it
never aborts the run. Every line lands in exactly one bucket, so

    insert + modify + delete + error + ignored == total_lines

Limitation: a MODIFY line only carries the new title and author. Replaying
it produces a record whose extra_info and source_url are empty and whose
fetched_by_user is "system"; the earlier values are not recoverable from the
log.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from booklog import payload
from booklog.models import Action, LogEntry, Record, now_ms
from booklog.txlog import MalformedLineError, iter_lines, parse_line

if TYPE_CHECKING:
    from booklog.store import RecordStore

logger = logging.getLogger("booklog.rebuild")

DEFAULT_FETCHED_BY = "system"


@dataclass(frozen=True)
class RebuildResult:
    insert_count: int = 0
    modify_count: int = 0
    delete_count: int = 0
    error_count: int = 0
    ignored_count: int = 0     # blank lines, audit-only actions, mutations without an id
    total_lines: int = 0

    def summary(self) -> str:
        return (
            f"Rebuilt: {self.insert_count} inserts, {self.modify_count} modifies, "
            f"{self.delete_count} deletes. Errors: {self.error_count}. "
            f"Ignored: {self.ignored_count}. Total lines: {self.total_lines}"
        )


def record_from_insert(entry: LogEntry, *, missing_fetched_at: int = 0) -> Record:
    """Build the record an INSERT line describes.

    A non-numeric fetchedAt falls back to the current time; an absent one to
    ``missing_fetched_at``.
    """
    extra = entry.extra
    if "fetchedAt" in extra:
        fetched_at = payload.get_int(extra, "fetchedAt", now_ms())
    else:
        fetched_at = missing_fetched_at
    return Record(
        id=entry.id,
        title=entry.title,
        author=payload.get_str(extra, "author"),
        extra_info=payload.get_str(extra, "extraInfo"),
        source_url=payload.get_str(extra, "url"),
        fetched_at=fetched_at,
        fetched_by_user=payload.get_str(extra, "fetchedByUser") or DEFAULT_FETCHED_BY,
    )


def record_from_modify(entry: LogEntry) -> Record:
    """Build the post-modification record a MODIFY line describes (lossy)."""
    return Record(
        id=entry.id,
        title=payload.get_str(entry.extra, "newTitle") or entry.title,
        author=payload.get_str(entry.extra, "newAuthor"),
        extra_info="",
        source_url="",
        fetched_at=now_ms(),
        fetched_by_user=DEFAULT_FETCHED_BY,
    )


def _apply(store: RecordStore, entry: LogEntry) -> Action | None:
    """Apply one entry. Returns the action applied, or None if it had no effect."""
    if not entry.id:
        return None
    if entry.action == Action.INSERT.value:
        store.insert(record_from_insert(entry))
        return Action.INSERT
    if entry.action == Action.MODIFY.value:
        store.update(record_from_modify(entry))
        return Action.MODIFY
    if entry.action == Action.DELETE.value:
        store.delete(entry.id)
        return Action.DELETE
    return None


def rebuild(store: RecordStore, log_path: Path | str) -> RebuildResult:
    """Clear store and replay every mutating line of the log into it.

    Raises FileNotFoundError (before touching the store) if the log is missing.
    """
    path = Path(log_path)
    if not path.exists():
        msg = f"Transaction log file not found: {path}"
        raise FileNotFoundError(msg)

    store.clear()

    counts = dict.fromkeys(("insert", "modify", "delete", "error", "ignored"), 0)
    total = 0
    for n, line in iter_lines(path):
        total += 1
        if not line.strip():
            counts["ignored"] += 1
            continue
        try:
            entry = parse_line(line)
        except MalformedLineError as exc:
            logger.warning("invalid log line %d (%s): %s", n, exc, line)
            counts["error"] += 1
            continue
        try:
            applied = _apply(store, entry)
        except Exception as exc:  # noqa: BLE001
            logger.warning("error processing log line %d: %s", n, exc)
            counts["error"] += 1
            continue
        if applied is None:
            counts["ignored"] += 1
        else:
            counts[applied.value.lower()] += 1

    result = RebuildResult(
        insert_count=counts["insert"],
        modify_count=counts["modify"],
        delete_count=counts["delete"],
        error_count=counts["error"],
        ignored_count=counts["ignored"],
        total_lines=total,
    )
    logger.info("%s", result.summary())
    return result
