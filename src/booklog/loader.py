"""Seed a store from a bootstrap file.

Same line format as the transaction log, but only INSERT lines mean
anything here: the loader seeds a store, it does not reconstruct one.
Lines starting with ``#`` are comments. Nothing is written to the log.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from booklog.models import Action, now_ms
from booklog.rebuild import record_from_insert
from booklog.txlog import MalformedLineError, iter_lines, parse_line

if TYPE_CHECKING:
    from booklog.store import RecordStore

logger = logging.getLogger("booklog.loader")


def load_initial_data(store: RecordStore, path: Path | str) -> int:
    """Insert every INSERT line of path into store. Returns records inserted."""
    path = Path(path)
    if not path.exists():
        msg = f"Initial data file not found: {path}"
        raise FileNotFoundError(msg)

    loaded = 0
    for n, line in iter_lines(path):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        try:
            entry = parse_line(stripped)
        except MalformedLineError:
            logger.warning("invalid format in %s line %d", path, n)
            continue
        if entry.action != Action.INSERT.value:
            continue
        if not entry.id or not entry.title:
            logger.warning("INSERT without id or title in %s line %d", path, n)
            continue
        try:
            store.insert(record_from_insert(entry, missing_fetched_at=now_ms()))
        except ValueError as exc:
            logger.warning("error parsing %s line %d: %s", path, n, exc)
            continue
        loaded += 1

    logger.info("loaded %d records from %s", loaded, path)
    return loaded
