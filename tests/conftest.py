from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from booklog.auth import Session
from booklog.meta import UserMetaStore
from booklog.models import Record, Role, User
from booklog.service import AdminService, UserService
from booklog.store import HashRecordStore
from booklog.txlog import TransactionLog

if TYPE_CHECKING:
    from pathlib import Path


def make_record(
    record_id: str = "B1",
    title: str = "Dune",
    *,
    author: str = "Herbert",
    fetched_at: int = 1000,
    extra_info: str = "",
    source_url: str = "",
    fetched_by_user: str = "alice",
) -> Record:
    return Record(
        record_id,
        title,
        author=author,
        extra_info=extra_info,
        source_url=source_url,
        fetched_at=fetched_at,
        fetched_by_user=fetched_by_user,
    )


def write_lines(path: Path, *lines: str) -> Path:
    path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
    return path


@pytest.fixture
def store() -> HashRecordStore:
    return HashRecordStore()


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "transactions.log"


@pytest.fixture
def txlog(log_path: Path) -> TransactionLog:
    return TransactionLog(log_path)


@pytest.fixture
def alice() -> User:
    return User("alice", "x", Role.USER)


@pytest.fixture
def admin_user() -> User:
    return User("admin", "x", Role.ADMIN)


@pytest.fixture
def meta() -> UserMetaStore:
    return UserMetaStore()


@pytest.fixture
def session(alice: User) -> Session:
    return Session(alice)


@pytest.fixture
def user_service(store: HashRecordStore, meta: UserMetaStore, session: Session, txlog: TransactionLog) -> UserService:
    return UserService(store, meta, session, txlog)


@pytest.fixture
def admin_service(store: HashRecordStore, meta: UserMetaStore, session: Session, log_path: Path) -> AdminService:
    return AdminService(store, meta, session, log_path)
