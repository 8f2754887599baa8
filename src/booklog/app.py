"""Workspace: one explicitly wired set of store, metadata, log and services.

    ws = Workspace.open(load_config())
    ws.login("alice", "secret")
    ws.users.store_search_results([record])
    ws.save()

On open the record store is restored by replaying the transaction log (the
same code path as an admin rebuild), unless start_empty is set.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from booklog.auth import Session, UserManager
from booklog.loader import load_initial_data
from booklog.meta import UserMetaStore
from booklog.rebuild import rebuild
from booklog.service import AdminService, UserService
from booklog.store import HashRecordStore
from booklog.txlog import TransactionLog

if TYPE_CHECKING:
    from pathlib import Path

    from booklog.config import BookLogConfig
    from booklog.models import User
    from booklog.rebuild import RebuildResult

logger = logging.getLogger("booklog.app")


@dataclass
class Workspace:
    cfg: BookLogConfig
    store: HashRecordStore
    meta: UserMetaStore
    txlog: TransactionLog
    accounts: UserManager
    session: Session
    users: UserService
    admin: AdminService
    restored: RebuildResult | None = None
    initial_loaded: int = 0
    persistent: bool = True    # False: metadata snapshot is neither read nor written
    # serialises mutation against rebuild
    lock: threading.RLock = field(default_factory=threading.RLock)

    @classmethod
    def open(
        cls,
        cfg: BookLogConfig,
        *,
        start_empty: bool = False,
        initial_data: Path | None = None,
    ) -> Workspace:
        cfg.ensure_dirs()
        store = HashRecordStore()
        meta = UserMetaStore()
        session = Session()

        restored = None
        if start_empty:
            logger.info("starting with an empty store")
        else:
            meta.load_snapshot(cfg.meta_path)
            if cfg.log_path.exists():
                restored = rebuild(store, cfg.log_path)

        txlog = TransactionLog(cfg.log_path)
        ws = cls(
            cfg=cfg,
            store=store,
            meta=meta,
            txlog=txlog,
            accounts=UserManager(cfg.users_path),
            session=session,
            users=UserService(store, meta, session, txlog),
            admin=AdminService(store, meta, session, cfg.log_path),
            restored=restored,
            persistent=not start_empty,
        )
        if initial_data is not None:
            ws.initial_loaded = load_initial_data(store, initial_data)
        return ws

    def login(self, username: str, password: str) -> User | None:
        user = self.accounts.authenticate(username, password)
        if user is not None:
            self.session.login(user)
        return user

    def rebuild(self) -> RebuildResult:
        """Admin rebuild under the workspace lock; persists the (now empty) metadata."""
        with self.lock:
            result = self.admin.rebuild_storage()
            self.save()
        return result

    def save(self) -> None:
        if not self.persistent:
            return
        self.meta.save_snapshot(self.cfg.meta_path)
