"""Read-only aggregates over the transaction log.

Nothing here touches the record store. A missing log yields empty results;
malformed lines are skipped silently.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from booklog import payload
from booklog.auth import GUEST_USERNAME
from booklog.models import Action, now_ms
from booklog.txlog import MalformedLineError, iter_lines, parse_line

if TYPE_CHECKING:
    from collections.abc import Iterator

    from booklog.models import LogEntry

_DAY_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class SearchQueryStats:
    query: str
    count: int

    def __str__(self) -> str:
        return f"{self.query} ({self.count} times)"


def _entries(log_path: Path | str) -> Iterator[tuple[LogEntry, bool]]:
    """Yield (entry, timestamp_is_valid) for every well-formed line."""
    path = Path(log_path)
    if not path.exists():
        return
    for _, line in iter_lines(path):
        if not line.strip():
            continue
        try:
            entry = parse_line(line)
        except MalformedLineError:
            continue
        yield entry, line.split("|", 1)[0].strip().lstrip("-").isdigit()


def top_search_queries(log_path: Path | str, top_n: int = 10) -> list[SearchQueryStats]:
    """Most frequent online search queries, most frequent first."""
    counts: Counter[str] = Counter()
    for entry, _ in _entries(log_path):
        if entry.action == Action.SEARCH_ONLINE.value:
            query = payload.get_str(entry.extra, "query")
            if query:
                counts[query] += 1
    return [SearchQueryStats(q, c) for q, c in counts.most_common(top_n)]


def records_per_day(log_path: Path | str) -> dict[str, int]:
    """INSERT lines per local calendar day (``YYYY-MM-DD``)."""
    daily: Counter[str] = Counter()
    for entry, ts_ok in _entries(log_path):
        if entry.action == Action.INSERT.value and ts_ok:
            day = datetime.fromtimestamp(entry.timestamp / 1000).strftime("%Y-%m-%d")  # noqa: DTZ006
            daily[day] += 1
    return dict(sorted(daily.items()))


def active_users_count(log_path: Path | str, days: int, now: int | None = None) -> int:
    """Distinct non-guest users with at least one line in the last ``days`` days."""
    cutoff = (now if now is not None else now_ms()) - days * _DAY_MS
    users = {
        entry.username
        for entry, ts_ok in _entries(log_path)
        if ts_ok and entry.timestamp >= cutoff
        and entry.username and entry.username.lower() != GUEST_USERNAME
    }
    return len(users)
