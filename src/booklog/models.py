"""Data models for the record store, metadata table and transaction log."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


class Action(str, Enum):
    """Every kind of line the transaction log may contain."""

    INSERT = "INSERT"
    MODIFY = "MODIFY"
    DELETE = "DELETE"
    SEARCH_ONLINE = "SEARCH_ONLINE"
    SEARCH_OFFLINE = "SEARCH_OFFLINE"
    FAVORITE_ADD = "FAVORITE_ADD"
    FAVORITE_REMOVE = "FAVORITE_REMOVE"
    NOTE_UPDATE = "NOTE_UPDATE"


# Only these change the record store during replay.
MUTATING_ACTIONS = frozenset({Action.INSERT, Action.MODIFY, Action.DELETE})


class Role(str, Enum):
    ADMIN = "ADMIN"
    USER = "USER"
    GUEST = "GUEST"


_ID_FORBIDDEN = ("|", "\n", "\r")


class Record:
    """A stored item (a book, usually). Identity is the id and nothing else.

    The id is fixed at construction; every other field is mutable in place.
    """

    __slots__ = ("_id", "author", "extra_info", "fetched_at", "fetched_by_user", "source_url", "title")

    def __init__(
        self,
        id: str,  # noqa: A002
        title: str,
        author: str | None = "",
        extra_info: str | None = "",
        source_url: str | None = "",
        fetched_at: int = 0,
        fetched_by_user: str = "system",
    ) -> None:
        if id is None or not id.strip():
            msg = "Record id cannot be empty"
            raise ValueError(msg)
        # the id is a log column; it must come back from a replay unchanged
        if any(c in id.strip() for c in _ID_FORBIDDEN):
            msg = f"Record id cannot contain '|' or line breaks: {id!r}"
            raise ValueError(msg)
        if title is None:
            msg = "Record title cannot be None"
            raise ValueError(msg)
        if fetched_by_user is None:
            msg = "Record fetched_by_user cannot be None"
            raise ValueError(msg)
        self._id = id.strip()
        self.title = title
        self.author = author or ""
        self.extra_info = extra_info or ""
        self.source_url = source_url or ""
        self.fetched_at = int(fetched_at)
        self.fetched_by_user = fetched_by_user

    @property
    def id(self) -> str:
        return self._id

    def copy(self) -> Record:
        return Record(
            self._id,
            self.title,
            self.author,
            self.extra_info,
            self.source_url,
            self.fetched_at,
            self.fetched_by_user,
        )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Record:
        """Build from a scraped-result dict (JSONL import)."""
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            author=d.get("author", ""),
            extra_info=d.get("extra_info", d.get("extraInfo", "")),
            source_url=d.get("source_url", d.get("url", "")),
            fetched_at=int(d.get("fetched_at", d.get("fetchedAt", 0)) or now_ms()),
            fetched_by_user=str(d.get("fetched_by_user", d.get("fetchedByUser", "")) or "system"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self._id,
            "title": self.title,
            "author": self.author,
            "extra_info": self.extra_info,
            "source_url": self.source_url,
            "fetched_at": self.fetched_at,
            "fetched_by_user": self.fetched_by_user,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return self._id == other._id

    def __hash__(self) -> int:
        return hash(self._id)

    def __repr__(self) -> str:
        return (
            f"Record(id={self._id!r}, title={self.title!r}, author={self.author!r}, "
            f"fetched_at={self.fetched_at}, fetched_by_user={self.fetched_by_user!r})"
        )


@dataclass(eq=False)
class UserRecordMeta:
    """Per-(user, record) annotation: favorite flag and a free-form note.

    Lives independently of the record it points at; a deleted record leaves
    its metadata rows behind.
    """

    record_id: str
    username: str
    is_favorite: bool = False
    note: str = ""
    last_updated: int = field(default_factory=now_ms)

    def __post_init__(self) -> None:
        if not self.record_id or not self.record_id.strip():
            msg = "record_id cannot be empty"
            raise ValueError(msg)
        if not self.username or not self.username.strip():
            msg = "username cannot be empty"
            raise ValueError(msg)
        self.record_id = self.record_id.strip()
        self.username = self.username.strip()
        self.note = self.note or ""

    @property
    def storage_key(self) -> str:
        return meta_key(self.username, self.record_id)

    def touch(self) -> None:
        self.last_updated = now_ms()

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> UserRecordMeta:
        return cls(
            record_id=d["record_id"],
            username=d["username"],
            is_favorite=bool(d.get("is_favorite", False)),
            note=d.get("note", ""),
            last_updated=int(d.get("last_updated", 0)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "username": self.username,
            "is_favorite": self.is_favorite,
            "note": self.note,
            "last_updated": self.last_updated,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UserRecordMeta):
            return NotImplemented
        return (self.username, self.record_id) == (other.username, other.record_id)

    def __hash__(self) -> int:
        return hash(self.storage_key)


def meta_key(username: str, record_id: str) -> str:
    """Composite storage key: ``username#record_id``."""
    return f"{username.strip()}#{record_id.strip()}"


@dataclass(frozen=True)
class LogEntry:
    """One line of the transaction log.

    ``action`` is kept as the raw string so that lines with unknown actions
    still round-trip untouched.
    """

    timestamp: int
    username: str
    action: str
    id: str = ""
    title: str = ""
    extra: dict[str, str | int] = field(default_factory=dict)

    @property
    def is_mutating(self) -> bool:
        return self.action in {a.value for a in MUTATING_ACTIONS}


@dataclass(eq=False)
class User:
    username: str
    password_hash: str
    role: Role = Role.USER

    def __post_init__(self) -> None:
        if not self.username or not self.username.strip():
            msg = "username cannot be empty"
            raise ValueError(msg)
        if self.password_hash is None:
            msg = "password_hash cannot be None"
            raise ValueError(msg)
        self.username = self.username.strip()

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def can_store_data(self) -> bool:
        return self.role in (Role.USER, Role.ADMIN)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, User):
            return NotImplemented
        return self.username == other.username

    def __hash__(self) -> int:
        return hash(self.username)
