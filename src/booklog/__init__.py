"""Record store with an append-only transaction log as source of truth.

Layout:
    .booklog/
        transactions.log  # TIMESTAMP | USERNAME | ACTION | ID | TITLE | EXTRA_JSON (append-only)
        users.txt         # username|sha256hex|ROLE
        meta.json         # favorites/notes snapshot (not in the log, lost on rebuild)

The in-memory HashRecordStore is a materialized view of the log: rebuild()
clears it and replays INSERT/MODIFY/DELETE lines in file order. Every other
action (searches, favorites, notes) is kept in the log as an audit trail and
ignored by replay.

Concurrent writes: appends hold a process-local lock plus flock(LOCK_EX) on
the log file. The record store itself is not locked; callers serialise
mutation and rebuild (Workspace.lock).
"""

from booklog.meta import UserMetaStore
from booklog.models import Action, LogEntry, Record, UserRecordMeta
from booklog.rebuild import RebuildResult, rebuild
from booklog.store import HashRecordStore, RecordStore
from booklog.txlog import TransactionLog

__all__ = [
    "Action",
    "HashRecordStore",
    "LogEntry",
    "RebuildResult",
    "Record",
    "RecordStore",
    "TransactionLog",
    "UserMetaStore",
    "UserRecordMeta",
    "rebuild",
]
