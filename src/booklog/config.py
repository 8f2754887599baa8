"""BookLogConfig: project-local config.

Default layout (all relative to the directory holding booklog.toml):

    booklog.toml          # optional config
    .booklog/
        transactions.log  # append-only transaction log (source of truth)
        users.txt         # username|sha256hex|ROLE
        meta.json         # favorites/notes snapshot (not recoverable by rebuild)

booklog.toml example:

    [booklog]
    name = "my-library"
    # data_dir = ".booklog"   # default

    [files]
    # log = "transactions.log"
    # users = "users.txt"
    # meta = "meta.json"

    [logging]
    level = "WARNING"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

_CONFIG_FILENAME = "booklog.toml"
_DEFAULT_DATA_DIR = ".booklog"
_DEFAULT_LOG_FILE = "transactions.log"
_DEFAULT_USERS_FILE = "users.txt"
_DEFAULT_META_FILE = "meta.json"
_DEFAULT_LOG_LEVEL = "WARNING"


@dataclass
class LoggingConfig:
    level: str = _DEFAULT_LOG_LEVEL


@dataclass
class BookLogConfig:
    """Resolved configuration for a booklog workspace."""

    root: Path                      # directory that contains booklog.toml
    name: str = ""
    data_dir: Path = field(default_factory=Path)
    log_file: str = _DEFAULT_LOG_FILE
    users_file: str = _DEFAULT_USERS_FILE
    meta_file: str = _DEFAULT_META_FILE
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def log_path(self) -> Path:
        return self.data_dir / self.log_file

    @property
    def users_path(self) -> Path:
        return self.data_dir / self.users_file

    @property
    def meta_path(self) -> Path:
        return self.data_dir / self.meta_file

    def ensure_dirs(self) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)


def load_config(root: Path | str | None = None) -> BookLogConfig:
    """Load booklog.toml from root (or search upward from cwd if root is None)."""
    root_path = _find_root(Path(root) if root else Path.cwd())
    config_path = root_path / _CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            raw = tomllib.load(f)

    section = raw.get("booklog", {})
    files = raw.get("files", {})
    log_section = raw.get("logging", {})

    return BookLogConfig(
        root=root_path,
        name=section.get("name", root_path.name),
        data_dir=root_path / section.get("data_dir", _DEFAULT_DATA_DIR),
        log_file=files.get("log", _DEFAULT_LOG_FILE),
        users_file=files.get("users", _DEFAULT_USERS_FILE),
        meta_file=files.get("meta", _DEFAULT_META_FILE),
        logging=LoggingConfig(
            level=str(log_section.get("level", _DEFAULT_LOG_LEVEL)).upper(),
        ),
    )


def _find_root(start: Path) -> Path:
    """Walk upward from start looking for booklog.toml."""
    for directory in (start, *start.parents):
        if (directory / _CONFIG_FILENAME).exists():
            return directory
    return start


def init_config(root: Path, name: str | None = None) -> Path:
    """Write a default booklog.toml at root. Raises if already exists."""
    config_path = root / _CONFIG_FILENAME
    if config_path.exists():
        msg = f"booklog.toml already exists at {config_path}"
        raise FileExistsError(msg)

    project_name = name or root.name
    content = f"""\
[booklog]
name = "{project_name}"
# data_dir = ".booklog"   # default

# [files]
# log = "transactions.log"   # append-only; rebuild replays it
# users = "users.txt"
# meta = "meta.json"         # favorites/notes; wiped by rebuild

# [logging]
# level = "WARNING"
"""
    config_path.write_text(content)
    return config_path
