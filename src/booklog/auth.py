"""Users file and the current-actor session.

users.txt, one account per line:

    admin|8c6976e5b5410415bde908bd4dee15dfb167a9c873fc4bb8a81f6f2ab448a918|ADMIN
    alice|2bd806c97f0e00af1a1fc3328fa763a9269723c8db8fac4f93af71db186d6e90|USER

The hash is treated as an opaque string compared for equality.
"""

from __future__ import annotations

import fcntl
import hashlib
import logging
from pathlib import Path

from booklog.models import Role, User

logger = logging.getLogger("booklog.auth")

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_PASSWORD = "admin"
GUEST_USERNAME = "guest"


def hash_password(password: str) -> str:
    """SHA-256 hex digest of the UTF-8 password."""
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class UserManager:
    """Accounts loaded from (and saved back to) the users file."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._users: dict[str, User] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            self._create_default_admin()
            return
        try:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            logger.warning("error reading %s: %s; creating default admin", self.path, exc)
            self._create_default_admin()
            return

        for n, line in enumerate(lines, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            parts = line.split("|")
            if len(parts) != 3:
                logger.warning("invalid format in %s line %d", self.path, n)
                continue
            username, password_hash, role_str = (p.strip() for p in parts)
            if not username:
                logger.warning("empty username in %s line %d", self.path, n)
                continue
            try:
                role = Role(role_str.upper())
            except ValueError:
                logger.warning("invalid role %r in %s line %d, using USER", role_str, self.path, n)
                role = Role.USER
            self._users[username] = User(username, password_hash, role)

        if not any(u.is_admin for u in self._users.values()):
            logger.warning("no admin account in %s, creating default admin", self.path)
            self._create_default_admin()

    def _create_default_admin(self) -> None:
        self._users[DEFAULT_ADMIN_USERNAME] = User(
            DEFAULT_ADMIN_USERNAME, hash_password(DEFAULT_ADMIN_PASSWORD), Role.ADMIN
        )
        self.save()

    def save(self) -> None:
        """Rewrite the users file under exclusive flock."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            fcntl.flock(f, fcntl.LOCK_EX)
            for u in self._users.values():
                f.write(f"{u.username}|{u.password_hash}|{u.role.value}\n")

    def authenticate(self, username: str | None, password: str | None) -> User | None:
        if username is None or password is None:
            return None
        user = self._users.get(username.strip())
        if user is None or user.password_hash != hash_password(password):
            return None
        return user

    def register_user(self, username: str, password: str) -> bool:
        """Create a USER account. False if the name is taken."""
        if not username or not username.strip():
            msg = "Username cannot be empty"
            raise ValueError(msg)
        if not password:
            msg = "Password cannot be empty"
            raise ValueError(msg)
        if "|" in username or username.strip().lower() == GUEST_USERNAME:
            msg = f"Invalid username: {username!r}"
            raise ValueError(msg)
        username = username.strip()
        if username in self._users:
            return False
        self._users[username] = User(username, hash_password(password), Role.USER)
        self.save()
        return True

    def get_user(self, username: str | None) -> User | None:
        if username is None:
            return None
        return self._users.get(username.strip())

    def user_exists(self, username: str | None) -> bool:
        return self.get_user(username) is not None

    def all_users(self) -> list[User]:
        return list(self._users.values())


class Session:
    """Who is acting right now. One instance per workspace, passed explicitly."""

    def __init__(self, user: User | None = None) -> None:
        self.user = user

    def login(self, user: User) -> None:
        self.user = user

    def guest(self) -> None:
        self.user = User(GUEST_USERNAME, "", Role.GUEST)

    def logout(self) -> None:
        self.user = None

    @property
    def is_logged_in(self) -> bool:
        return self.user is not None

    @property
    def is_admin(self) -> bool:
        return self.user is not None and self.user.is_admin

    @property
    def can_store_data(self) -> bool:
        return self.user is not None and self.user.can_store_data

    @property
    def username(self) -> str:
        return self.user.username if self.user is not None else GUEST_USERNAME
